# =============================================================================
# test_semantic.py - Semantic Checker Unit Tests
# =============================================================================
# Tests for the type-stack checker driven by the parser.
#
# Test coverage includes:
#   - Declarations and redeclaration
#   - Identifier and constant operands
#   - The complete operator/type table
#   - Assignment compatibility and int-to-float widening
#   - Condition, read and write checkpoints
#   - Malformed tokens and the end-of-program balance check
# =============================================================================

import itertools

import pytest
from mlang.semantic import (
    OPERATION_TABLE,
    SemanticChecker,
    ValueType,
)
from mlang.tables import TableEntry, Token, delimiter_token, keyword_token
from mlang.errors import (
    AlreadyDeclaredError,
    NotAnIdentifierError,
    SemanticError,
    TypeMismatchError,
    UnbalancedTypeStackError,
    UndeclaredUseError,
    UnknownIdentifierError,
)

INT, FLOAT, BOOL = ValueType.INT, ValueType.FLOAT, ValueType.BOOL

IDENTIFIERS = (TableEntry(1, "a"), TableEntry(2, "b"), TableEntry(3, "f"), TableEntry(4, "p"))
NUMBERS = (TableEntry(1, "1"), TableEntry(2, "2.5"), TableEntry(3, "1E+20"))

A, B, F, P = Token(4, 1), Token(4, 2), Token(4, 3), Token(4, 4)
ONE, HALF, BIG = Token(3, 1), Token(3, 2), Token(3, 3)
TRUE = keyword_token("true")

# One constant token per type, used to push arbitrary types
CONSTANT_OF = {INT: ONE, FLOAT: HALF, BOOL: TRUE}

BINARY_OPERATORS = ["+", "-", "*", "/", "==", "!=", "<", ">", "<=", ">=", "&&", "||"]


# =============================================================================
# Helper Functions
# =============================================================================

def make_checker(**declared: ValueType) -> SemanticChecker:
    """Create a checker and declare the named identifiers."""
    checker = SemanticChecker(IDENTIFIERS, NUMBERS)
    tokens = {"a": A, "b": B, "f": F, "p": P}
    for position, (name, value_type) in enumerate(declared.items()):
        checker.declare_identifier(tokens[name], value_type, position)
    return checker


def expected_result(op: str, left: ValueType, right: ValueType):
    """The operator table written out independently of the implementation."""
    numeric = {INT, FLOAT}
    if op in ("+", "-", "*"):
        if left in numeric and right in numeric:
            return INT if left == right == INT else FLOAT
        return None
    if op == "/":
        return FLOAT if left in numeric and right in numeric else None
    if op in ("==", "!="):
        if left in numeric and right in numeric:
            return BOOL
        return BOOL if left == right == BOOL else None
    if op in ("<", ">", "<=", ">="):
        return BOOL if left in numeric and right in numeric else None
    if op in ("&&", "||"):
        return BOOL if left == right == BOOL else None
    raise AssertionError(op)


# =============================================================================
# Declaration Tests
# =============================================================================

class TestDeclarations:
    """Test identifier declaration."""

    def test_declare(self):
        checker = make_checker(a=INT, f=FLOAT)
        assert checker.declared_names() == {"a": INT, "f": FLOAT}

    def test_redeclaration(self):
        checker = make_checker(a=INT)
        with pytest.raises(AlreadyDeclaredError) as exc_info:
            checker.declare_identifier(A, FLOAT, 6)
        assert exc_info.value.name == "a"
        assert exc_info.value.token_position == 7

    def test_declaration_group(self):
        checker = SemanticChecker(IDENTIFIERS, NUMBERS)
        checker.begin_declaration_group()
        checker.declare_identifier(A, BOOL, 3)
        checker.declare_identifier(B, BOOL, 5)
        checker.end_declaration_group(BOOL)
        assert checker.declared_names() == {"a": BOOL, "b": BOOL}

    def test_not_an_identifier(self):
        checker = SemanticChecker(IDENTIFIERS, NUMBERS)
        with pytest.raises(NotAnIdentifierError):
            checker.declare_identifier(ONE, INT, 0)

    def test_unknown_identifier(self):
        checker = SemanticChecker(IDENTIFIERS, NUMBERS)
        with pytest.raises(UnknownIdentifierError):
            checker.declare_identifier(Token(4, 42), INT, 0)

    def test_checkers_do_not_share_records(self):
        first = SemanticChecker(IDENTIFIERS, NUMBERS)
        first.declare_identifier(A, INT, 0)
        second = SemanticChecker(IDENTIFIERS, NUMBERS)
        second.declare_identifier(A, BOOL, 0)
        assert first.declared_names() == {"a": INT}
        assert [entry.value for entry in IDENTIFIERS] == ["a", "b", "f", "p"]


# =============================================================================
# Operand Tests
# =============================================================================

class TestOperands:
    """Test identifier and constant operands."""

    def test_use_declared_identifier(self):
        checker = make_checker(f=FLOAT)
        assert checker.use_identifier(F, 0) == FLOAT
        assert checker.type_stack == (FLOAT,)

    def test_use_undeclared_identifier(self):
        checker = make_checker()
        with pytest.raises(UndeclaredUseError) as exc_info:
            checker.use_identifier(B, 9)
        assert "'b'" in str(exc_info.value)
        assert exc_info.value.token_position == 10

    @pytest.mark.parametrize("token,value_type", [
        (ONE, INT),
        (HALF, FLOAT),
        (BIG, FLOAT),
        (TRUE, BOOL),
        (keyword_token("false"), BOOL),
    ])
    def test_constants(self, token, value_type):
        checker = make_checker()
        assert checker.use_constant(token, 0) == value_type
        assert checker.type_stack == (value_type,)

    def test_constant_must_be_constant(self):
        with pytest.raises(SemanticError):
            make_checker().use_constant(keyword_token("begin"), 0)

    def test_unknown_number(self):
        with pytest.raises(SemanticError):
            make_checker().use_constant(Token(3, 99), 0)


# =============================================================================
# Operator Table Tests
# =============================================================================

class TestOperatorTable:
    """Every operator over every type pair matches the fixed table."""

    @pytest.mark.parametrize("op", BINARY_OPERATORS)
    def test_binary_operator(self, op):
        for left, right in itertools.product([INT, FLOAT, BOOL], repeat=2):
            checker = make_checker()
            checker.use_constant(CONSTANT_OF[left], 0)
            checker.use_constant(CONSTANT_OF[right], 2)

            expected = expected_result(op, left, right)
            if expected is None:
                with pytest.raises(TypeMismatchError):
                    checker.binary_op(delimiter_token(op), 1)
            else:
                assert checker.binary_op(delimiter_token(op), 1) == expected
                assert checker.type_stack == (expected,)

    def test_table_has_no_extra_entries(self):
        for (op, left, right), result in OPERATION_TABLE.items():
            assert expected_result(op, left, right) == result

    def test_mismatch_message(self):
        checker = make_checker()
        checker.use_constant(TRUE, 0)
        checker.use_constant(ONE, 2)
        with pytest.raises(TypeMismatchError, match="'bool' and 'int'"):
            checker.binary_op(delimiter_token("+"), 1)

    def test_binary_needs_two_operands(self):
        checker = make_checker()
        checker.use_constant(ONE, 0)
        with pytest.raises(UnbalancedTypeStackError):
            checker.binary_op(delimiter_token("+"), 1)

    def test_not_of_bool(self):
        checker = make_checker()
        checker.use_constant(TRUE, 1)
        assert checker.unary_op(delimiter_token("!"), 0) == BOOL

    @pytest.mark.parametrize("constant", [ONE, HALF])
    def test_not_of_number(self, constant):
        checker = make_checker()
        checker.use_constant(constant, 1)
        with pytest.raises(TypeMismatchError):
            checker.unary_op(delimiter_token("!"), 0)


# =============================================================================
# Checkpoint Tests
# =============================================================================

class TestCheckpoints:
    """Test assignment, condition, read and write checkpoints."""

    def test_assign_same_type(self):
        checker = make_checker(a=INT)
        checker.use_constant(ONE, 2)
        checker.check_assignment(A, 0)
        assert checker.type_stack == ()

    def test_assign_int_to_float(self):
        checker = make_checker(f=FLOAT)
        checker.use_constant(ONE, 2)
        checker.check_assignment(F, 0)
        assert checker.type_stack == ()

    def test_assign_float_to_int(self):
        checker = make_checker(a=INT)
        checker.use_constant(HALF, 2)
        with pytest.raises(TypeMismatchError):
            checker.check_assignment(A, 0)

    def test_assign_int_to_bool(self):
        checker = make_checker(p=BOOL)
        checker.use_constant(ONE, 2)
        with pytest.raises(TypeMismatchError) as exc_info:
            checker.check_assignment(P, 0)
        message = str(exc_info.value)
        assert "incompatible types" in message
        assert "'bool'" in message and "'int'" in message

    def test_int_loop_counter(self):
        checker = make_checker(a=INT)
        checker.check_loop_counter(A, 0)
        assert checker.type_stack == ()

    @pytest.mark.parametrize("name,token", [("p", P), ("f", F)])
    def test_non_int_loop_counter(self, name, token):
        checker = make_checker(**{name: BOOL if name == "p" else FLOAT})
        with pytest.raises(TypeMismatchError) as exc_info:
            checker.check_loop_counter(token, 0)
        assert exc_info.value.expected_type == "int"

    def test_assign_to_undeclared(self):
        checker = make_checker()
        checker.use_constant(ONE, 2)
        with pytest.raises(UndeclaredUseError):
            checker.check_assignment(A, 0)

    def test_condition_bool(self):
        checker = make_checker()
        checker.use_constant(TRUE, 0)
        checker.check_condition(0)
        assert checker.type_stack == ()

    def test_condition_not_bool(self):
        checker = make_checker()
        checker.use_constant(ONE, 0)
        with pytest.raises(TypeMismatchError):
            checker.check_condition(0)

    def test_expression_type_check_and_consume(self):
        checker = make_checker()
        checker.use_constant(ONE, 0)
        checker.check_expression_type(INT, 0)
        assert checker.type_stack == (INT,)
        checker.consume_expression_type(INT, 0)
        assert checker.type_stack == ()

    def test_expression_type_mismatch(self):
        checker = make_checker()
        checker.use_constant(HALF, 0)
        with pytest.raises(TypeMismatchError) as exc_info:
            checker.consume_expression_type(INT, 0)
        assert exc_info.value.expected_type == "int"
        assert exc_info.value.actual_type == "float"

    def test_read_declared(self):
        make_checker(a=INT).check_read(A, 1)

    def test_read_undeclared(self):
        with pytest.raises(UndeclaredUseError):
            make_checker().check_read(A, 1)

    def test_write_consumes_any_type(self):
        checker = make_checker()
        for constant in (ONE, HALF, TRUE):
            checker.use_constant(constant, 0)
            checker.consume_write_value(0)
        assert checker.type_stack == ()

    def test_write_without_type(self):
        with pytest.raises(UnbalancedTypeStackError):
            make_checker().consume_write_value(0)

    def test_finalize_empty(self):
        make_checker().finalize()

    def test_finalize_leftover(self):
        checker = make_checker()
        checker.use_constant(ONE, 0)
        with pytest.raises(UnbalancedTypeStackError) as exc_info:
            checker.finalize()
        assert exc_info.value.token_position is None
        assert "end of program" in str(exc_info.value)
