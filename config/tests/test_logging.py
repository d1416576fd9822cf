import json
import logging

from config.logging import JsonFormatter, SamplingFilter


def make_record(msg, level=logging.INFO, **extra):
    record = logging.LogRecord("stockledger.inventory", level, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_merges_extra_fields():
    record = make_record("inventory.transfer_committed", event="inventory.transfer_committed", transfer_id=7)

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["name"] == "stockledger.inventory"
    assert payload["message"] == "inventory.transfer_committed"
    assert payload["transfer_id"] == 7
    assert payload["time"].endswith("Z")


def test_json_formatter_merges_json_message_and_stringifies_objects():
    record = make_record(json.dumps({"event": "x", "count": 2}), batch=object())

    payload = json.loads(JsonFormatter().format(record))

    assert payload["event"] == "x"
    assert payload["count"] == 2
    assert isinstance(payload["batch"], str)


def test_sampling_filter_keeps_audit_events_and_other_levels():
    sampler = SamplingFilter(rate=0.0, levels=["INFO"], allow_events=["inventory.transfer_committed"])

    assert sampler.filter(make_record("noise")) is False
    assert sampler.filter(make_record("noise", level=logging.WARNING)) is True
    assert sampler.filter(make_record("anything", event="inventory.transfer_committed")) is True
    assert sampler.filter(make_record("inventory.transfer_committed")) is True


def test_sampling_filter_bad_rate_falls_back_to_keep_all():
    assert SamplingFilter(rate="nope").filter(make_record("noise")) is True
