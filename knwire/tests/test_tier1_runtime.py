"""Tests for tier1_runtime modules."""
from __future__ import annotations

import time

import pytest
from pydantic import BaseModel

from knwire.tier0_core.errors import PassCancelledError, SerializationError, ValidationError
from knwire.tier1_runtime.context import PassContext, current_pass, get_context, pass_scope
from knwire.tier1_runtime.serialize import deserialize, serialize
from knwire.tier1_runtime.validate import validate_input


# ── context ────────────────────────────────────────────────────────────────

class TestContext:
    def test_context_defaults(self):
        ctx = PassContext()
        assert ctx.pass_id is not None  # auto-generated
        assert ctx.remaining() is None
        ctx.check()

    def test_cancelled_context_raises(self):
        ctx = PassContext()
        ctx.cancel()
        with pytest.raises(PassCancelledError, match="cancelled"):
            ctx.check()

    def test_expired_deadline_raises(self):
        ctx = PassContext(deadline=time.monotonic() - 1)
        assert ctx.remaining() == 0.0
        with pytest.raises(PassCancelledError, match="deadline"):
            ctx.check()

    def test_pass_scope_activates_and_restores(self):
        assert current_pass() is None
        with pass_scope("router", "default", timeout=30.0) as ctx:
            assert get_context() is ctx
            assert current_pass() is ctx
            assert ctx.integration == "router"
            assert ctx.namespace == "default"
            assert 0 < ctx.remaining() <= 30.0
        assert current_pass() is None
        assert get_context() is not ctx

    def test_cancelling_outside_a_pass_does_not_leak(self):
        get_context().cancel()
        get_context().check()
        with pass_scope("router", "default") as ctx:
            ctx.check()

    def test_nested_scopes_are_independent(self):
        with pass_scope("outer", "default") as outer:
            with pass_scope("inner", "default") as inner:
                inner.cancel()
            assert get_context() is outer
            outer.check()


# ── validate ───────────────────────────────────────────────────────────────

class TestValidate:
    def test_valid_input_returns_model(self):
        class Options(BaseModel):
            name: str
            enabled: bool

        result = validate_input(Options, {"name": "knative", "enabled": True})
        assert result.name == "knative"

    def test_model_instance_passes_through(self):
        class Options(BaseModel):
            name: str

        opts = Options(name="x")
        assert validate_input(Options, opts) is opts

    def test_invalid_input_raises_validation_error(self):
        class Options(BaseModel):
            enabled: bool

        with pytest.raises(ValidationError) as info:
            validate_input(Options, {"enabled": "not-a-bool"})
        assert "enabled" in info.value.fields


# ── serialize ──────────────────────────────────────────────────────────────

class TestSerialize:
    def test_serialize_dict_is_compact(self):
        assert serialize({"a": 1, "b": "é"}) == '{"a":1,"b":"é"}'

    def test_serialize_deserialize_roundtrip(self):
        class Item(BaseModel):
            id: str
            value: int

        original = Item(id="123", value=42)
        assert deserialize(serialize(original), Item) == original

    def test_deserialize_accepts_bytes(self):
        class Item(BaseModel):
            id: str

        assert deserialize(b'{"id":"x"}', Item).id == "x"

    def test_malformed_payload_raises_serialization_error(self):
        class Item(BaseModel):
            id: str

        with pytest.raises(SerializationError):
            deserialize("{not json", Item)
        with pytest.raises(SerializationError):
            deserialize('{"other": 1}', Item)
