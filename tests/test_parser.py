import logging
import re
from typing import Any

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from irule.irule_ast import (
    ArrayLiteral,
    BlockStatement,
    Boolean,
    ClassCommand,
    CommandInvocation,
    ExpressionStatement,
    ForEachStatement,
    GlobPattern,
    HashLiteral,
    HttpExpression,
    Identifier,
    IfStatement,
    IndexExpression,
    InfixExpression,
    InterpolatedString,
    ListLiteral,
    LtmRule,
    MapLiteral,
    MultiPattern,
    NodeStatement,
    NumberLiteral,
    PrefixExpression,
    Program,
    RegexPattern,
    RegsubExpression,
    SetStatement,
    StringLiteral,
    StringOperation,
    SwitchStatement,
    WhenExpression,
)
from irule.irule_checks import is_reserved_keyword
from irule.irule_lexer import CharacterStream, Lexer
from irule.irule_parser import Parser, parse


def parse_ok(source: str, strict: bool = False) -> Program:
    program, errors = parse(source, strict_variables=strict)
    assert errors == []
    return program


def parse_errors(source: str, strict: bool = False) -> list[str]:
    return parse(source, strict_variables=strict)[1]


def has_error(errors: list[str], fragment: str) -> bool:
    return any(fragment in e for e in errors)


def expression(program: Program, index: int = 0) -> Any:
    stmt = program.statements[index]
    assert isinstance(stmt, ExpressionStatement)
    return stmt.expression


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------


def test_set_statement() -> None:
    program = parse_ok("set x 5")
    stmt = program.statements[0]
    assert isinstance(stmt, SetStatement)
    assert isinstance(stmt.name, Identifier)
    assert stmt.name.value == "x"
    assert isinstance(stmt.value, NumberLiteral)
    assert stmt.value.value == 5


def test_unclosed_if_is_reported() -> None:
    errors = parse_errors("if {1 + 1 == 2} {")
    assert has_error(errors, "missing closing brace for block opened on line 1")
    assert has_error(errors, "Unbalanced braces: depth at end of parsing is 1")


def test_when_with_if_else() -> None:
    source = """
when HTTP_REQUEST {
    if { [HTTP::uri] starts_with "/api" } {
        pool api_pool
    } else {
        pool default_pool
    }
}
"""
    program = parse_ok(source)
    when = expression(program)
    assert isinstance(when, WhenExpression)
    assert when.event is not None and when.event.value == "HTTP_REQUEST"
    assert when.block is not None
    assert len(when.block.statements) == 1
    stmt = when.block.statements[0]
    assert isinstance(stmt, IfStatement)
    assert isinstance(stmt.condition, InfixExpression)
    assert stmt.condition.operator == "starts_with"
    assert stmt.consequence is not None
    assert stmt.alternative is not None


def test_elseif_chain() -> None:
    source = (
        'if { $a == 1 } { log local0. "one" } '
        'elseif { $a == 2 } { log local0. "two" } '
        'else { log local0. "other" }'
    )
    program = parse_ok(source)
    stmt = program.statements[0]
    assert isinstance(stmt, IfStatement)
    nested = stmt.alternative.statements[0]  # type: ignore[union-attr]
    assert isinstance(nested, IfStatement)
    assert isinstance(nested.alternative, BlockStatement)
    assert parse_ok(str(program)) == program


def test_if_accepts_then() -> None:
    stmt = parse_ok("if { 1 } then { }").statements[0]
    assert isinstance(stmt, IfStatement)


def test_semicolon_separates_commands() -> None:
    program = parse_ok("set a 1; set b 2")
    assert [type(s) for s in program.statements] == [SetStatement, SetStatement]


def test_set_requires_value() -> None:
    assert has_error(parse_errors("set x"), "set requires a value for 'x'")


def test_set_too_many_arguments() -> None:
    assert has_error(parse_errors("set x 1 2"), "Too many arguments to set")


def test_set_rejects_invalid_variable_name() -> None:
    errors = parse_errors('set 123invalid "value"')
    assert errors == ["   Invalid variable name '123invalid' (line 1)"]


def test_set_rejects_reserved_variable_name() -> None:
    errors = parse_errors("set if 1")
    assert has_error(errors, "'if' is a reserved keyword and cannot be used as a variable name")


def test_set_array_element() -> None:
    program = parse_ok("set arr(key) 1\nlog local0. $arr(key)", strict=True)
    stmt = program.statements[0]
    assert isinstance(stmt, SetStatement)
    assert isinstance(stmt.name, IndexExpression)
    invocation = expression(program, 1)
    assert isinstance(invocation.arguments[1], IndexExpression)


def test_foreach_declares_its_variable() -> None:
    program = parse_ok("foreach item {a b} { log local0. $item }", strict=True)
    stmt = program.statements[0]
    assert isinstance(stmt, ForEachStatement)
    assert isinstance(stmt.items, ListLiteral)
    assert len(stmt.items.elements) == 2


def test_ltm_rule_wrapper() -> None:
    source = """
ltm rule /Common/my_rule {
    when HTTP_REQUEST { pool web }
}
"""
    rule = parse_ok(source).statements[0]
    assert isinstance(rule, LtmRule)
    assert rule.name == "/Common/my_rule"
    assert rule.body is not None and len(rule.body.statements) == 1


def test_trailing_words_are_reported_once() -> None:
    assert parse_errors("5 5 5") == ["   Unexpected token '5' (line 1)"]


def test_stray_closing_brace() -> None:
    errors = parse_errors("set x 1 }")
    assert errors == ["   Closing '}' without opening one (line 1)"]


def test_non_integer_number() -> None:
    assert parse_errors("set x 1.5") == ["   could not parse '1.5' as integer (line 1)"]


def test_unbalanced_brackets() -> None:
    errors = parse_errors("set x [HTTP::uri")
    assert has_error(errors, "missing closing bracket for '[' opened on line 1")
    assert has_error(errors, "Unbalanced brackets: depth at end of parsing is 1")


def test_lone_dollar() -> None:
    assert has_error(parse_errors("log local0. $"), "Expected a variable name after '$'")


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------


def test_plus_folds_into_infix() -> None:
    expr = expression(parse_ok("5 + true"))
    assert isinstance(expr, InfixExpression)
    assert expr.operator == "+"
    assert isinstance(expr.right, Boolean)


def test_negated_boolean() -> None:
    expr = expression(parse_ok("-true"))
    assert isinstance(expr, PrefixExpression)
    assert expr.operator == "-"
    assert expr.right == Boolean(expr.right.token, value=True)


@pytest.mark.parametrize(  # type: ignore[misc]
    "source, canonical",
    [
        ("set x -$y", "set x -$y"),
        ("set x -[HTTP::uri]", "set x -[HTTP::uri]"),
        ("set x -(1)", "set x -(1)"),
        ("if { - $y > 1 } { }", "if { -$y > 1 } { }"),
        ("if { - 5 < 1 } { }", "if { - 5 < 1 } { }"),
    ],
)
def test_negation_round_trip(source: str, canonical: str) -> None:
    program = parse_ok(source)
    assert str(program) == canonical
    assert parse_ok(canonical) == program


def test_string_literal() -> None:
    expr = expression(parse_ok('"hello world"'))
    assert isinstance(expr, StringLiteral)
    assert expr.value == "hello world"


def test_operator_precedence() -> None:
    expr = expression(parse_ok("[expr 1 - 2 * 3]")).elements[1]
    assert isinstance(expr, InfixExpression)
    assert expr.operator == "-"
    assert isinstance(expr.right, InfixExpression)
    assert expr.right.operator == "*"


def test_invalid_standalone_identifier() -> None:
    errors = parse_errors("when HTTP_REQUEST { foobar }")
    assert errors == ["   Invalid identifier 'foobar' (line 1)"]


def test_command_invocation_with_interpolation() -> None:
    program = parse_ok('when HTTP_REQUEST { log local0. "hello [HTTP::uri]" }')
    invocation = expression(program).block.statements[0].expression
    assert isinstance(invocation, CommandInvocation)
    assert invocation.name.value == "log"
    message = invocation.arguments[1]
    assert isinstance(message, InterpolatedString)
    assert message.parts[0] == StringLiteral(message.token, value="hello ")
    assert isinstance(message.parts[1], HttpExpression)


def test_interpolated_variable() -> None:
    program = parse_ok('set name "x"\nlog local0. "hi $name"', strict=True)
    message = expression(program, 1).arguments[1]
    assert isinstance(message, InterpolatedString)
    assert message.parts[1] == Identifier(message.token, value="$name", is_variable=True)


def test_escaped_dollar_is_not_interpolated() -> None:
    expr = expression(parse_ok(r'"cost \$5"'))
    assert isinstance(expr, StringLiteral)


def test_strict_variables() -> None:
    assert parse_errors("log local0. $missing") == []
    errors = parse_errors("log local0. $missing", strict=True)
    assert errors == ["   Undeclared variable '$missing' (line 1)"]
    assert parse_errors("set a 1\nlog local0. $a", strict=True) == []


def test_hash_literal() -> None:
    stmt = parse_ok("set h {a 1, b 2}").statements[0]
    assert isinstance(stmt.value, HashLiteral)  # type: ignore[union-attr]
    assert len(stmt.value.pairs) == 2  # type: ignore[union-attr]


def test_script_command_braces_are_blocks() -> None:
    invocation = expression(parse_ok("catch { set x 1 } err"))
    assert isinstance(invocation, CommandInvocation)
    assert isinstance(invocation.arguments[0], BlockStatement)


def test_expr_braces_are_data() -> None:
    stmt = parse_ok("set y [expr {$x + 1}]").statements[0]
    array = stmt.value  # type: ignore[union-attr]
    assert isinstance(array, ArrayLiteral)
    assert isinstance(array.elements[1], ListLiteral)


@pytest.mark.parametrize(  # type: ignore[misc]
    "source, message",
    [
        (
            'if { "abc" - 1 } { }',
            "Invalid operand types for '-': StringLiteral - NumberLiteral",
        ),
        (
            "if { 1 contains 2 } { }",
            "Invalid operand types for 'contains': NumberLiteral contains NumberLiteral",
        ),
        (
            "if { 1 && 2 } { }",
            "Invalid operand types for '&&': NumberLiteral && NumberLiteral",
        ),
    ],
)
def test_operand_type_errors(source: str, message: str) -> None:
    assert parse_errors(source) == [f"   {message} (line 1)"]


def test_mixed_condition_is_accepted() -> None:
    parse_ok('if { [HTTP::uri] contains "x" && $y == 1 } { }')


# ---------------------------------------------------------------------------
# when
# ---------------------------------------------------------------------------


def test_when_priority() -> None:
    when = expression(parse_ok("when HTTP_REQUEST priority 100 { }"))
    assert when.priority == NumberLiteral(when.priority.token, value=100)


def test_invalid_event() -> None:
    assert has_error(parse_errors("when FOO_BAR { }"), "Invalid event 'FOO_BAR' for when")


def test_nested_when() -> None:
    errors = parse_errors("when HTTP_REQUEST { when HTTP_RESPONSE { } }")
    assert has_error(errors, "when cannot be nested inside another when block")


def test_when_without_block() -> None:
    errors = parse_errors("when HTTP_REQUEST")
    assert has_error(errors, "missing '{' after 'when HTTP_REQUEST', got 'EOF'")


# ---------------------------------------------------------------------------
# switch
# ---------------------------------------------------------------------------


def test_regex_switch() -> None:
    source = """
when HTTP_REQUEST {
    switch -regex [HTTP::uri] {
        "^/api/v[0-9]+" { pool api_pool }
        default { pool web_pool }
    }
}
"""
    program = parse_ok(source)
    switch = expression(program).block.statements[0]
    assert isinstance(switch, SwitchStatement)
    assert switch.is_regex
    assert len(switch.cases) == 2
    assert isinstance(switch.cases[0].value, RegexPattern)
    assert switch.default is switch.cases[1]


def test_invalid_switch_option() -> None:
    errors = parse_errors("switch -foo $x { default { } }")
    assert errors == ["   Invalid switch option '-foo' (line 1)"]


def test_glob_switch_rejects_regex_pattern() -> None:
    errors = parse_errors('switch -glob $x {\n "^/api.*" { }\n}')
    assert has_error(errors, "Invalid glob pattern (looks like a regex pattern): ^/api.*")


def test_regex_switch_rejects_glob_pattern() -> None:
    errors = parse_errors('switch -regex $x {\n "*.jpg" { }\n}')
    assert has_error(errors, "Invalid regex pattern (looks like a glob pattern): *.jpg")


def test_regex_switch_rejects_bad_regex() -> None:
    errors = parse_errors('switch -regex $x {\n "(abc" { }\n}')
    assert has_error(errors, "Invalid regex pattern '(abc'")


def test_duplicate_default() -> None:
    errors = parse_errors("switch $x {\n default { }\n default { }\n}")
    assert errors == ["   Duplicate default case in switch (line 3)"]


def test_comment_between_cases() -> None:
    source = """switch $x {
    "a" { }
    # comment
    "b" { }
}"""
    assert parse_errors(source) == ["   Comments are not allowed between switch cases (line 3)"]


def test_comment_inside_case_body() -> None:
    source = """switch $x {
    "a" {
        # fine
        log local0. "a"
    }
}"""
    parse_ok(source)


def test_fallthrough_patterns() -> None:
    switch = parse_ok('switch $x {\n "a" -\n "b" { pool p }\n}').statements[0]
    assert isinstance(switch, SwitchStatement)
    value = switch.cases[0].value
    assert isinstance(value, MultiPattern)
    assert [p.value for p in value.patterns] == ["a", "b"]  # type: ignore[attr-defined]


def test_braced_glob_pattern_is_verbatim() -> None:
    switch = parse_ok("switch -glob [HTTP::uri] {\n {/images/*} { }\n}").statements[0]
    assert isinstance(switch, SwitchStatement)
    pattern = switch.cases[0].value
    assert isinstance(pattern, GlobPattern)
    assert pattern.value == "/images/*"
    assert str(pattern) == "{/images/*}"


# ---------------------------------------------------------------------------
# Domain commands
# ---------------------------------------------------------------------------


def test_regsub() -> None:
    expr = expression(parse_ok(r'regsub -all {\s+} $input " " result'))
    assert isinstance(expr, RegsubExpression)
    assert expr.flags == ["-all"]
    assert isinstance(expr.pattern, RegexPattern)
    assert expr.pattern.value == r"\s+"
    assert isinstance(expr.variable, Identifier)
    assert expr.variable.value == "result"


def test_regsub_declares_target() -> None:
    source = 'set input "a b"\nregsub -all {\\s+} $input "" result\nlog local0. $result'
    parse_ok(source, strict=True)


def test_regsub_invalid_flag() -> None:
    assert parse_errors("regsub -bogus a b c d") == ["   Invalid regsub flag '-bogus' (line 1)"]


def test_regsub_argument_count() -> None:
    errors = parse_errors("regsub a b c")
    assert has_error(
        errors,
        "regsub requires exactly 4 arguments (pattern, input, replacement, variable), got 3",
    )


def test_string_operation() -> None:
    stmt = parse_ok('set x [string tolower "ABC"]').statements[0]
    op = stmt.value.elements[0]  # type: ignore[union-attr]
    assert isinstance(op, StringOperation)
    assert op.operation == "tolower"


def test_invalid_string_subcommand() -> None:
    errors = parse_errors('set x [string frobnicate "ABC"]')
    assert errors == ["   Invalid string subcommand 'frobnicate' (line 1)"]


def test_string_map() -> None:
    stmt = parse_ok('set x [string map {"a" "b"} $y]').statements[0]
    op = stmt.value.elements[0]  # type: ignore[union-attr]
    assert isinstance(op.arguments[0], MapLiteral)
    errors = parse_errors('set x [string map {"a" "b" "c"} $y]')
    assert has_error(errors, "string map requires an even number of mapping elements")


def test_class_match() -> None:
    source = "if { [class match [HTTP::uri] starts_with allowed_uris] } { pool a }"
    stmt = parse_ok(source).statements[0]
    cmd = stmt.condition.elements[0]  # type: ignore[union-attr]
    assert isinstance(cmd, ClassCommand)
    assert cmd.subcommand == "match"
    assert len(cmd.arguments) == 3


def test_class_match_argument_count() -> None:
    errors = parse_errors("class match $x")
    assert has_error(
        errors, "class match requires exactly 3 arguments (item, operator, class), got 1"
    )


def test_invalid_class_subcommand() -> None:
    assert parse_errors("class bogus x") == ["   Invalid class subcommand 'bogus' (line 1)"]


def test_header_names() -> None:
    parse_ok('HTTP::header insert X-Custom "v"')
    parse_ok("HTTP::header value Host")
    errors = parse_errors("HTTP::header value Hostx")
    assert errors == ["   Invalid HTTP header name 'Hostx' (line 1)"]


def test_node_and_pool_in_same_block() -> None:
    source = """when HTTP_REQUEST {
    pool web_pool
    node 10.0.0.1 80
}"""
    errors = parse_errors(source)
    assert errors == ["   Invalid combination: 'node' and 'pool' in the same block. (line 3)"]


def test_node_and_pool_in_sibling_blocks() -> None:
    source = """when HTTP_REQUEST {
    if { $a eq 1 } { pool web_pool } else { node 10.0.0.1 80 }
}"""
    program = parse_ok(source)
    stmt = expression(program).block.statements[0]
    node = stmt.alternative.statements[0]
    assert isinstance(node, NodeStatement)
    assert node.port == NumberLiteral(node.port.token, value=80)


def test_parser_identifier_helper() -> None:
    parser = Parser(Lexer(CharacterStream("")))
    assert parser.is_valid_irule_identifier("x", "variable") == (True, None)
    assert parser.is_valid_irule_identifier("foobar", "standalone")[0] is False


def test_diagnostics_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="irule.irule_parser")
    parse("set x")
    assert "diagnostic: set requires a value for 'x' (line 1)" in caplog.text


# ---------------------------------------------------------------------------
# Canonical form
# ---------------------------------------------------------------------------


def test_canonical_round_trip() -> None:
    source = """
when HTTP_REQUEST priority 100 {
    set host [string tolower [HTTP::host]]
    if { $host ends_with ".example.com" } {
        HTTP::header insert X-Forwarded-Host $host
        pool web_pool
    } else {
        HTTP::respond 403 content "denied"
    }
    switch -glob [HTTP::uri] {
        "/api/*" { pool api_pool }
        default { return }
    }
}
"""
    program = parse_ok(source)
    text = str(program)
    assert text.startswith(
        "when HTTP_REQUEST priority 100 {\nset host [string tolower [HTTP::host]]"
    )
    assert parse_ok(text) == program


variable_names = st.from_regex(r"[a-z_][a-z0-9_]{0,8}", fullmatch=True).filter(
    lambda name: not is_reserved_keyword(name)
)


@given(variable_names, st.integers(min_value=-(10**12), max_value=10**12))  # type: ignore[misc]
def test_set_round_trip(name: str, value: int) -> None:
    program, errors = parse(f"set {name} {value}")
    assert errors == []
    assert str(program) == f"set {name} {value}"
    assert parse(str(program))[0] == program


@composite  # type: ignore[misc]
def nested_ifs(draw: Any) -> tuple[str, int, int]:
    depth = draw(st.integers(min_value=0, max_value=6))
    opened = depth + 1
    closers = draw(st.integers(min_value=0, max_value=opened))
    source = "when HTTP_REQUEST {\n" + "if { 1 } {\n" * depth + "}\n" * closers
    return source, opened, closers


@given(nested_ifs())  # type: ignore[misc]
def test_missing_closers_are_reported(case: tuple[str, int, int]) -> None:
    source, opened, closers = case
    _, errors = parse(source)
    assert has_error(errors, "Unbalanced braces") == (closers < opened)
    assert (errors == []) == (closers == opened)


fragments = st.lists(
    st.sampled_from(
        [
            "when", "HTTP_REQUEST", "if", "else", "elseif", "switch", "-regex", "-glob",
            "default", "set", "x", "$x", "5", "-", "+", "*", "{", "}", "[", "]", "(", ")",
            '"a"', '"[HTTP::uri]"', "HTTP::uri", "HTTP::header", "pool", "node", "class",
            "match", "regsub", "string", "map", "foreach", ";", "\n", "#", "contains",
            "10.0.0.1", "{^a}", "eq", "&&", "return", "ltm", "rule", "$", "\\",
        ]
    ),
    max_size=30,
).map(" ".join)

LINE_SUFFIX = re.compile(r"\(line [1-9]\d*\)$")


@settings(max_examples=300)  # type: ignore[misc]
@given(fragments)  # type: ignore[misc]
def test_accepted_programs_round_trip(source: str) -> None:
    program, errors = parse(source)
    if errors:
        return
    again, errors_again = parse(str(program))
    assert errors_again == []
    assert again == program


@settings(max_examples=200)  # type: ignore[misc]
@given(fragments)  # type: ignore[misc]
def test_parser_is_total(source: str) -> None:
    program, errors = parse(source)
    assert isinstance(program, Program)
    assert all(e.startswith("   ") and LINE_SUFFIX.search(e) for e in errors)


NOISE = ' \n{}[]()$"-+*/<>=!;#,\\abxHTP:_019.'


@given(st.text(alphabet=NOISE, max_size=60))  # type: ignore[misc]
def test_parser_is_total_on_noise(source: str) -> None:
    program, errors = parse(source)
    assert isinstance(program, Program)
    assert all(e.startswith("   ") and LINE_SUFFIX.search(e) for e in errors)
