import threading

import pytest

from loggrelay.spy_metrics import SpyMetric, SpyMetricRegistry, with_labels


def test_counter_is_found_by_name_and_labels():
    registry = SpyMetricRegistry()
    counter = registry.new_counter("ingress", "help", with_labels({"protocol": "grpc"}))
    assert registry.get_metric("ingress", {"protocol": "grpc"}) is counter
    assert registry.has_metric("ingress", {"protocol": "grpc"})


def test_metric_without_labels_is_found_with_no_tags():
    registry = SpyMetricRegistry()
    gauge = registry.new_gauge("queue_size", "help")
    assert registry.get_metric("queue_size", {}) is gauge
    assert registry.get_metric("queue_size") is gauge


def test_label_order_does_not_matter():
    registry = SpyMetricRegistry()
    metric = registry.new_counter(
        "dropped", "help", with_labels({"b": "2"}), with_labels({"a": "1"})
    )
    assert registry.get_metric("dropped", {"a": "1", "b": "2"}) is metric
    assert metric.keys == ["a", "b"]


def test_different_labels_are_different_metrics():
    registry = SpyMetricRegistry()
    first = registry.new_counter("sent", "help", with_labels({"dir": "in"}))
    second = registry.new_counter("sent", "help", with_labels({"dir": "out"}))
    first.add(1)
    second.add(5)
    assert registry.get_metric("sent", {"dir": "in"}).value() == 1
    assert registry.get_metric("sent", {"dir": "out"}).value() == 5
    assert not registry.has_metric("sent", {})


def test_unknown_metric_raises_key_error():
    registry = SpyMetricRegistry()
    registry.new_counter("known", "help")
    with pytest.raises(KeyError, match="unknown metric: missing"):
        registry.get_metric("missing", {})
    assert not registry.has_metric("missing", {})


def test_recreating_a_metric_replaces_it():
    registry = SpyMetricRegistry()
    old = registry.new_gauge("g", "help")
    new = registry.new_gauge("g", "help")
    assert registry.get_metric("g") is new
    assert registry.get_metric("g") is not old


def test_set_and_add():
    metric = SpyMetric("m")
    assert metric.value() == 0.0
    metric.set(2.5)
    metric.add(1.5)
    assert metric.value() == 4.0
    metric.set(1.0)
    assert metric.value() == 1.0


def test_concurrent_adds_are_not_lost():
    metric = SpyMetric("m")

    def adder():
        for _ in range(1000):
            metric.add(1)

    threads = [threading.Thread(target=adder) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert metric.value() == 4000


def test_labels_are_exposed():
    metric = SpyMetric("m", with_labels({"origin": "router"}))
    assert metric.labels == {"origin": "router"}
    assert metric.name == "m"