from loggrelay.envelope import CounterPayload, GaugePayload
from loggrelay.metrics import with_tags
from loggrelay.spy_client import SpyMetricClient


def test_get_delta_reports_counter_increments():
    client = SpyMetricClient()
    counter = client.new_counter("ingress")
    counter.increment(3)
    counter.increment(4)
    assert client.get_delta("ingress") == counter.delta()
    assert client.get_delta("ingress") == 7


def test_get_delta_for_unknown_counter_is_zero():
    client = SpyMetricClient()
    client.new_counter("ingress").increment(3)
    assert client.get_delta("egress") == 0


def test_events_are_recorded_by_title():
    client = SpyMetricClient()
    client.emit_event("some-title", "some-body")
    client.emit_event("other-title", "other-body")
    assert client.get_event("some-title") == "some-body"
    assert client.get_event("other-title") == "other-body"


def test_first_event_with_title_wins():
    client = SpyMetricClient()
    client.emit_event("some-title", "first")
    client.emit_event("some-title", "second")
    assert client.get_event("some-title") == "first"


def test_unknown_event_has_empty_body():
    client = SpyMetricClient()
    assert client.get_event("missing") == ""


def test_get_value_reports_gauge_value():
    client = SpyMetricClient()
    gauge = client.new_gauge("load", "percent")
    gauge.set(99.9)
    assert client.get_value("load") == 99.9
    assert client.get_value("missing") == 0


def test_counter_envelope_resets_delta():
    client = SpyMetricClient()
    counter = client.new_counter("ingress", with_tags({"protocol": "grpc"}))
    counter.increment(5)

    envelopes = client.get_envelopes("ingress")

    assert len(envelopes) == 1
    env = envelopes[0]
    assert env.source_id == ""
    assert env.message == CounterPayload(name="ingress", delta=5)
    assert env.text_tags() == {"protocol": "grpc"}
    assert client.get_delta("ingress") == 0


def test_envelopes_cover_counters_then_gauges_with_the_same_name():
    client = SpyMetricClient()
    client.new_gauge("shared", "unit").set(1.5)
    client.new_counter("shared").increment(2)
    client.new_counter("other").increment(1)

    envelopes = client.get_envelopes("shared")

    assert [type(env.message) for env in envelopes] == [CounterPayload, GaugePayload]
    assert envelopes[0].message.delta == 2
    assert envelopes[1].message.metrics["shared"].value == 1.5
    assert envelopes[1].message.metrics["shared"].unit == "unit"


def test_no_envelopes_for_unknown_name():
    client = SpyMetricClient()
    client.new_counter("ingress")
    assert client.get_envelopes("missing") == []