import celpy
import pytest

from cel_mcp.engine.evaluator import MAX_DETAIL_LENGTH, Evaluator, _describe, evaluate
from cel_mcp.errors import CompileError, ContextError, EvaluationError, ExecutionError


def test_addition_without_context() -> None:
    assert evaluate("1+2", {}) == 3


def test_multiplication_with_context() -> None:
    assert evaluate("a * b", {"a": 5, "b": 10}) == 50


def test_string_concatenation() -> None:
    assert evaluate("'Hello, ' + name", {"name": "World"}) == "Hello, World"


def test_compile_error_mentions_compile() -> None:
    with pytest.raises(CompileError) as excinfo:
        evaluate("1 +/ 2", {})
    message = str(excinfo.value)
    assert "compile" in message
    assert message.removeprefix("CEL compile error:").strip()


def test_division_by_zero_is_an_execution_error() -> None:
    with pytest.raises(ExecutionError, match="CEL execution error"):
        evaluate("1 / 0", {})


def test_missing_variable_is_an_execution_error() -> None:
    with pytest.raises(ExecutionError) as excinfo:
        evaluate("missing + 1", {"a": 1, "other": "bound value"})
    message = str(excinfo.value)
    assert message.startswith("CEL execution error:")
    assert "missing" in message
    assert "Activation(" not in message
    assert "bound value" not in message
    assert len(message) < 200


def test_type_mismatch_is_an_execution_error() -> None:
    with pytest.raises(ExecutionError) as excinfo:
        evaluate("a + 'x'", {"a": 1})
    message = str(excinfo.value).removeprefix("CEL execution error:").strip()
    assert message
    assert len(message) < 200


def test_index_error_carries_engine_detail() -> None:
    with pytest.raises(ExecutionError, match="out of range") as excinfo:
        evaluate("[1, 2][5]", {})
    assert len(str(excinfo.value)) < 200


def test_reserved_context_key_is_a_context_error() -> None:
    with pytest.raises(ContextError, match="Context error") as excinfo:
        evaluate("1", {"in": 1})
    assert excinfo.value.key == "in"


def test_all_failures_share_a_base_class() -> None:
    for expression in ("1 +/ 2", "1 / 0"):
        with pytest.raises(EvaluationError):
            evaluate(expression, {})


@pytest.mark.parametrize(
    "value",
    [
        False,
        7,
        -1.25,
        "text",
        [1, [2, 3], {"k": "v"}],
        {"name": "cel", "tags": ["a", "b"], "meta": {"ok": True, "score": 0.5}},
    ],
)
def test_identity_expression_returns_context_value(value) -> None:
    assert evaluate("x", {"x": value}) == value


def test_results_cover_engine_literals() -> None:
    assert evaluate("3u", {}) == 3
    assert evaluate("1.5 * 2.0", {}) == 3.0
    assert evaluate("b'abc'", {}) == "abc"
    assert evaluate("[1, 2] + [3]", {}) == [1, 2, 3]
    assert evaluate("{'a': 1}.a", {}) == 1
    assert evaluate("null", {}) is None


def test_map_with_int_keys_is_stringified() -> None:
    result = evaluate("{1: 'one'}", {})
    assert isinstance(result, dict)
    assert list(result.values()) == ["one"]
    assert all(isinstance(key, str) for key in result)


def test_program_cache_is_bounded_and_transparent() -> None:
    evaluator = Evaluator(cache_size=2)
    assert evaluator.evaluate("x + 1", {"x": 1}) == 2
    assert evaluator.evaluate("x + 1", {"x": 41}) == 42
    assert evaluator.cached_programs == 1
    evaluator.evaluate("1", {})
    evaluator.evaluate("2", {})
    assert evaluator.cached_programs == 2
    assert evaluator.evaluate("x + 1", {"x": 0}) == 1


def test_cache_can_be_disabled() -> None:
    evaluator = Evaluator(cache_size=0)
    evaluator.evaluate("1 + 1", {})
    assert evaluator.cached_programs == 0


def test_compile_errors_are_not_cached() -> None:
    evaluator = Evaluator()
    for _ in range(2):
        with pytest.raises(CompileError):
            evaluator.evaluate("1 +/ 2", {})
    assert evaluator.cached_programs == 0


def test_negative_cache_size_is_rejected() -> None:
    with pytest.raises(ValueError):
        Evaluator(cache_size=-1)


class TestDescribe:
    def test_activation_repr_is_cut_from_reason(self) -> None:
        bulky = "x" * 4000
        exc = celpy.CELEvalError(
            f"undeclared reference to 'missing' (in activation 'Activation(vars={{'a': '{bulky}'}})')",
            None,
            None,
        )
        assert _describe(exc) == "undeclared reference to 'missing'"

    def test_detail_from_args_is_appended(self) -> None:
        exc = celpy.CELEvalError("invalid_argument", IndexError, ("list index out of range",))
        assert _describe(exc) == "invalid_argument: list index out of range"

    def test_detail_already_in_reason_is_not_repeated(self) -> None:
        exc = celpy.CELEvalError("divide by zero", ZeroDivisionError, ("divide by zero",))
        assert _describe(exc) == "divide by zero"

    def test_long_detail_is_truncated(self) -> None:
        exc = celpy.CELEvalError("no such overload", TypeError, ("y" * 1000,))
        message = _describe(exc)
        assert message.startswith("no such overload: ")
        assert message.endswith("...")
        assert len(message) == len("no such overload: ") + MAX_DETAIL_LENGTH

    def test_plain_exception_uses_its_text(self) -> None:
        assert _describe(ValueError("bad value")) == "bad value"
        assert _describe(RuntimeError()) == "RuntimeError"
