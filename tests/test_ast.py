import hypothesis.strategies as st
import pytest
from hypothesis import given

from irule.irule_ast import (
    ASTNode,
    BlockStatement,
    Boolean,
    CallExpression,
    CaseStatement,
    GlobPattern,
    HashLiteral,
    Identifier,
    IfStatement,
    IndexExpression,
    InfixExpression,
    ListLiteral,
    MultiPattern,
    NumberLiteral,
    PrefixExpression,
    Program,
    SetStatement,
    StringLiteral,
    SwitchStatement,
)
from irule.irule_constants import TokenKind
from irule.irule_lexer import Token


def tok(kind: TokenKind = TokenKind.IDENT, value: str = "x", line: int = 1, col: int = 1) -> Token:
    return Token(kind, value, line, col)


def ident(value: str) -> Identifier:
    return Identifier(tok(value=value), value=value)


def test_kind_is_class_name() -> None:
    assert ident("x").kind == "Identifier"
    assert Program(tok()).kind == "Program"


def test_location_comes_from_token() -> None:
    node = Identifier(tok(line=3, col=7), value="x")
    assert (node.line, node.col) == (3, 7)


def test_equality_ignores_token() -> None:
    a = Identifier(Token(TokenKind.IDENT, "x", 1, 1), value="x")
    b = Identifier(Token(TokenKind.IDENT, "x", 5, 9), value="x")
    assert a == b


def test_equality_compares_fields() -> None:
    assert ident("x") != ident("y")
    assert ident("x") != Identifier(tok(), value="x", is_variable=True)
    assert ident("x") != StringLiteral(tok(), value="x")


def test_base_node_has_no_canonical_form() -> None:
    with pytest.raises(NotImplementedError):
        ASTNode(tok()).string()


def test_set_statement_string() -> None:
    stmt = SetStatement(tok(TokenKind.SET, "set"), name=ident("x"), value=NumberLiteral(tok(), 5))
    assert str(stmt) == "set x 5"


def test_prefix_strings() -> None:
    assert str(PrefixExpression(tok(), operator="-", right=Boolean(tok(), True))) == "- true"
    assert str(PrefixExpression(tok(), operator="-", right=NumberLiteral(tok(), 5))) == "- 5"
    assert str(PrefixExpression(tok(), operator="-", right=ident("$y"))) == "-$y"
    assert str(PrefixExpression(tok(), operator="!", right=ident("x"))) == "!x"
    assert str(PrefixExpression(tok(), operator="not", right=ident("x"))) == "not x"


def test_infix_string() -> None:
    expr = InfixExpression(tok(), left=NumberLiteral(tok(), 1), operator="+", right=ident("y"))
    assert str(expr) == "1 + y"


def test_empty_block_string() -> None:
    assert str(BlockStatement(tok(TokenKind.LBRACE, "{"))) == "{ }"


def test_block_string() -> None:
    block = BlockStatement(tok(TokenKind.LBRACE, "{"), statements=[ident("a"), ident("b")])
    assert str(block) == "{\na\nb\n}"


def test_if_elseif_string() -> None:
    inner = IfStatement(
        tok(TokenKind.IF, "elseif"),
        condition=ident("b"),
        consequence=BlockStatement(tok(TokenKind.LBRACE, "{")),
    )
    outer = IfStatement(
        tok(TokenKind.IF, "if"),
        condition=ident("a"),
        consequence=BlockStatement(tok(TokenKind.LBRACE, "{")),
        alternative=BlockStatement(tok(TokenKind.ELSEIF, "elseif"), statements=[inner]),
    )
    assert str(outer) == "if { a } { } elseif { b } { }"


def test_call_and_index_strings() -> None:
    call = CallExpression(
        tok(TokenKind.LPAREN, "("), function=ident("f"), arguments=[ident("a"), ident("b")]
    )
    assert str(call) == "f(a, b)"
    index = IndexExpression(tok(TokenKind.LPAREN, "("), left=ident("$arr"), index=ident("k"))
    assert str(index) == "$arr(k)"


def test_list_and_hash_strings() -> None:
    lst = ListLiteral(tok(TokenKind.LBRACE, "{"), elements=[ident("a"), NumberLiteral(tok(), 1)])
    assert str(lst) == "{a 1}"
    hashed = HashLiteral(
        tok(TokenKind.LBRACE, "{"),
        pairs=[(ident("a"), NumberLiteral(tok(), 1)), (ident("b"), NumberLiteral(tok(), 2))],
    )
    assert str(hashed) == "{a 1, b 2}"


def test_pattern_delimiters_follow_token() -> None:
    assert str(GlobPattern(tok(TokenKind.LBRACE, "{"), value="/a/*")) == "{/a/*}"
    assert str(GlobPattern(tok(TokenKind.STRING, "/a/*"), value="/a/*")) == '"/a/*"'
    multi = MultiPattern(
        tok(),
        patterns=[StringLiteral(tok(), value="a"), StringLiteral(tok(), value="b")],
    )
    assert str(multi) == '"a" - "b"'


def test_switch_properties() -> None:
    default = CaseStatement(tok(TokenKind.DEFAULT, "default"), is_default=True)
    sw = SwitchStatement(
        tok(TokenKind.SWITCH, "switch"),
        options=["-regex"],
        value=ident("$x"),
        cases=[CaseStatement(tok(), value=StringLiteral(tok(), value="a")), default],
    )
    assert sw.is_regex
    assert not sw.is_glob
    assert sw.default is default


def test_to_dict_nests_children() -> None:
    stmt = SetStatement(
        tok(TokenKind.SET, "set", 2, 3), name=ident("x"), value=NumberLiteral(tok(), 5)
    )
    d = Program(tok(), statements=[stmt]).to_dict()
    assert d["kind"] == "Program"
    child = d["statements"][0]
    assert child["kind"] == "SetStatement"
    assert (child["line"], child["col"]) == (2, 3)
    assert child["name"]["value"] == "x"
    assert child["value"] == {"kind": "NumberLiteral", "line": 1, "col": 1, "value": 5}


def test_to_dict_serializes_pairs() -> None:
    hashed = HashLiteral(tok(), pairs=[(ident("a"), ident("b"))])
    d = hashed.to_dict()
    assert d["pairs"][0][0]["value"] == "a"
    assert d["pairs"][0][1]["value"] == "b"


@given(st.text())  # type: ignore[misc]
def test_string_literal_is_quoted(value: str) -> None:
    assert str(StringLiteral(tok(TokenKind.STRING, value), value=value)) == f'"{value}"'


@given(st.integers())  # type: ignore[misc]
def test_number_literal_string(value: int) -> None:
    assert str(NumberLiteral(tok(TokenKind.NUMBER, str(value)), value=value)) == str(value)
