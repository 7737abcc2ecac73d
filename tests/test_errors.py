from skillloop.errors import (
    CAPACITY_MESSAGE, GenerationFailed, InvalidArgument, NotFound, ProviderFailure,
    ProviderQuotaExceeded, SkillLoopError, error_response,
)


def test_not_found_hides_detail():
    assert error_response(NotFound("Plan abc owned by someone else")) == (404, "Not found")


def test_invalid_argument_keeps_message():
    assert error_response(InvalidArgument("Expected 3 answers, got 2")) == (400, "Expected 3 answers, got 2")


def test_quota_maps_to_capacity_message():
    assert error_response(ProviderQuotaExceeded("429")) == (503, CAPACITY_MESSAGE)


def test_upstream_failures_are_502():
    assert error_response(ProviderFailure("timeout"))[0] == 502
    assert error_response(GenerationFailed("no json"))[0] == 502


def test_unexpected_errors_are_500():
    assert error_response(RuntimeError("boom")) == (500, "Internal error")


def test_hierarchy():
    for cls in (NotFound, InvalidArgument, ProviderQuotaExceeded, ProviderFailure, GenerationFailed):
        assert issubclass(cls, SkillLoopError)
