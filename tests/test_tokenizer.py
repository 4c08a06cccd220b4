"""Tests for the tokenizer in groups.py."""

import pytest  # type: ignore

from errors import InvalidSyntax
from groups import Token, TokenKind, Tokenizer, format_chain, tokenize


def kinds(line):
    return [t.kind for t in tokenize(line)]


def values(line):
    return [t.value for t in tokenize(line)]


class TestOperators:
    """Operator tokens and their priorities."""

    def test_all_operators(self):
        assert kinds("&& || ; | < > 2>") == [
            TokenKind.AND,
            TokenKind.OR,
            TokenKind.SEMICOLON,
            TokenKind.PIPE,
            TokenKind.INPUT_REDIRECT,
            TokenKind.OUTPUT_REDIRECT,
            TokenKind.STDERR_REDIRECT,
        ]

    def test_double_pipe_is_or_not_two_pipes(self):
        assert kinds("a || b") == [TokenKind.WORD, TokenKind.OR, TokenKind.WORD]

    def test_stderr_redirect_beats_word(self):
        assert kinds("cat 2> foo") == [TokenKind.WORD, TokenKind.STDERR_REDIRECT, TokenKind.WORD]

    def test_semicolon_ends_word_without_space(self):
        assert kinds("ls;pwd") == [TokenKind.WORD, TokenKind.SEMICOLON, TokenKind.WORD]
        assert values("ls;pwd") == ["ls", ";", "pwd"]

    def test_longest_match_keeps_glued_operators_in_word(self):
        # A word runs until space, tab or semicolon, so it outgrows the pipe
        assert kinds("a|b") == [TokenKind.WORD]
        assert values("a|b") == ["a|b"]


class TestWordsAndStrings:
    """Bare words, quoted strings and whitespace."""

    def test_whitespace_is_skipped(self):
        assert values("  ls \t -al   ") == ["ls", "-al"]

    def test_empty_line_has_no_tokens(self):
        assert list(tokenize("")) == []
        assert list(tokenize(" \t ")) == []

    def test_quoted_string_strips_quotes(self):
        toks = list(tokenize('echo "hello world"'))
        assert toks == [Token(TokenKind.WORD, "echo"), Token(TokenKind.QUOTED_STRING, "hello world")]

    def test_escaped_quote_is_kept_literally(self):
        toks = list(tokenize(r'echo "say \"hi\""'))
        assert toks[1].kind is TokenKind.QUOTED_STRING
        assert toks[1].value == r'say \"hi\"'

    def test_quoted_string_may_contain_operators(self):
        assert values('echo "a && b; c"') == ["echo", "a && b; c"]

    def test_unterminated_quote_is_a_word(self):
        assert kinds('echo "abc') == [TokenKind.WORD, TokenKind.WORD]

    def test_token_positions(self):
        toks = list(tokenize("ls  -al"))
        assert [t.position for t in toks] == [0, 4]


class TestLaziness:
    """The token stream is produced on demand."""

    def test_tokens_are_lazy(self):
        stream = Tokenizer("a b c").tokens()
        assert next(stream).value == "a"
        assert next(stream).value == "b"

    def test_invalid_syntax_raised_at_unmatched_position(self, monkeypatch):
        # Restrict the matcher table so that '@' has no match
        restricted = tuple(m for m in Tokenizer.MATCHERS if m[0] is not TokenKind.WORD)
        monkeypatch.setattr(Tokenizer, "MATCHERS", restricted)
        stream = tokenize("; @")
        assert next(stream).kind is TokenKind.SEMICOLON
        with pytest.raises(InvalidSyntax) as exc:
            next(stream)
        assert exc.value.position == 2


def test_format_chain_empty():
    assert format_chain([]) == "<empty>"
