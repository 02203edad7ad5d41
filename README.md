# loggrelay

Building blocks for services that move log and metric envelopes from many
producers to a few consumers. It uses only the standard library.

## What is inside

| Module | Purpose |
| --- | --- |
| `loggrelay.envelope` | `Envelope` and its payloads (`CounterPayload`, `GaugePayload`, `GaugeEntry`, `EventPayload`), plus `text_value` for tag values |
| `loggrelay.diodes` | `OneToOne` and `ManyToOne` ring buffers that drop the oldest data instead of blocking writers |
| `loggrelay.metrics` | `Counter` and `Gauge` metrics, configured with `with_tags` and `with_version` |
| `loggrelay.emitter` | `Client`, which sends every metric it creates on a pulse interval and emits events |
| `loggrelay.spy_client` | `SpyMetricClient`, an in-memory stand-in for `Client` in tests |
| `loggrelay.envelope_averager` | `EnvelopeAverager`, which reports the average envelope size per interval |
| `loggrelay.batching` | `V2EnvelopeBatcher`, which groups envelopes by size or by time |
| `loggrelay.static_finder` | `StaticFinder` and `Event`, a fixed source of upstream addresses |
| `loggrelay.pool` | `Pool`, a set of upstream connections keyed by address |
| `loggrelay.connector` | `Connector`, `Subscription` and `SubscriptionRequest`: fan-in of many upstream streams into one reader |
| `loggrelay.tls` | `client_context` and `server_context` for building `ssl.SSLContext` objects |
| `loggrelay.logwriter` | `LogWriter`, a timestamping writer (standard error by default) |
| `loggrelay.write_strategies` | `ConstantWriteStrategy`, `BurstWriteStrategy` and `BurstParameters` for generating load |
| `loggrelay.spy_metrics` | `SpyMetricRegistry`, `SpyMetric` and `with_labels` for asserting on labelled metrics |

## Installing

```
pip install loggrelay
```

To run the test suite from a checkout:

```
pip install -e ".[test]"
pytest
```

## Envelopes

`Envelope` is a dataclass with `source_id`, `timestamp` (nanoseconds),
`message` (a `CounterPayload`, `GaugePayload` or `EventPayload`),
`deprecated_tags` and `instance_id`. Tag values are dictionaries built with
`text_value("...")`; `Envelope.text_tags()` returns the text tags as plain
strings.

## Diodes

A diode never makes a writer wait. When the buffer is full, the oldest
entry is overwritten. The alerter, if given, is called on the reading side
with the number of entries dropped since the previous read.

```python
from loggrelay.diodes import OneToOne

dropped = []
diode = OneToOne(1024, dropped.append)

diode.set(b"a log line")
item = diode.try_next()      # b"a log line", or None when empty
```

`next(timeout=None)` waits for the next item and raises `TimeoutError` if
none arrives in time. `close()` releases any waiting reader; once a closed
diode is drained, `next` returns `None`. A diode cannot hold `None`, and its
size must be at least 1. `ManyToOne` has the same methods and is meant for
many concurrent writers.

## Counters and gauges

A counter collects increments until it is sent. Sending resets the delta to
zero; if the function given to `with_envelope` raises, the delta is put back
and the exception propagates.

```python
from loggrelay.metrics import Counter, with_tags, with_version

counter = Counter("ingress", "source-id", with_tags({"protocol": "grpc"}), with_version(2, 0))
counter.increment(5)
counter.increment(6)
counter.delta()              # 11
```

A `Gauge(name, unit, source_id, *options)` holds a value with two decimal
places of precision and supports `set`, `increment`, `decrement` and
`value`. Both kinds hand an `Envelope` to the function given to
`with_envelope`.

## Sending metrics

`Client(ingress, pulse_interval=5.0, source_id="", origin=None, deployment=None)`
sends through any object with a `sender(timeout=None)` method that returns
a stream with `send(envelope)` and `close()`. `deployment` is a
`(deployment, job, index)` tuple; together with `origin` it becomes tags on
every metric the client creates.

- `new_counter(name, *options)` and `new_gauge(name, unit, *options)` create
  metrics that are sent once per pulse interval on a background thread. A
  stream that fails is closed and a new one is opened on the next pulse.
- `emit_event(title, body)` sends a single event; failures are ignored.
- `close()` stops the pulses. `Client` is also a context manager.

In tests, `SpyMetricClient` offers the same `new_counter`, `new_gauge` and
`emit_event` without sending anything, with `get_delta`, `get_value`,
`get_event` and `get_envelopes` for inspection (`get_envelopes` resets the
deltas of matching counters, as sending does).

## Averaging envelope sizes

```python
from loggrelay.envelope_averager import EnvelopeAverager

averager = EnvelopeAverager()
averager.start(1.0, print)   # prints the average size seen in each second
averager.track(1, 100)
averager.stop()
```

An interval with no envelopes reports `0.0`. The count wraps at 16 bits and
the total at 48 bits, and the averages allow for the wrap.

## Batching

`V2EnvelopeBatcher(size, interval, writer)` passes a list of envelopes to
`writer` as soon as `size` of them have been written. `flush()` writes a
partial batch once `interval` seconds have passed since the last write.
It is not thread safe.

## Subscribing to many upstreams

A `StaticFinder(addrs)` yields one `Event` with the given addresses from
`next()`, then blocks; `stop()` queues an event with no addresses.

`Pool(dialer, retry_delay=5.0)` connects in the background to each address
given to `register_doppler`, retrying while the dialer raises.
`subscribe(addr, request)` opens a stream on an established connection and
raises `ConnectionError` if there is none; `close(addr)` drops it; `size()`
counts established connections.

`Connector(buffer_size, pool, finder, metric_client)` follows the finder,
registers new addresses with the pool, and merges their streams into each
`Subscription` returned by `subscribe(SubscriptionRequest(shard_id, app_id))`.
`Subscription.recv(timeout=None)` returns the next payload, raising
`TimeoutError` if none arrives and `concurrent.futures.CancelledError` once
the subscription is cancelled; `cancel()` ends it. Upstreams the finder
drops are closed once no subscription reads from them. At most 2000
subscriptions are open at a time by default (`max_connections`); beyond
that `subscribe` raises `RuntimeError`. Received payloads are counted on an
`ingress` counter made by `metric_client`. `stop()` stops following the
finder and cancels every subscription.

## TLS

`client_context(cert_file, key_file, ca_file, server_name)` returns a
mutual-TLS client context that checks the peer against `server_name`.
`server_context(cert_file, key_file, ca_file, cipher_suites=None)` returns a
server context that requires client certificates. Both require TLS 1.2 or
later and allow `TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256` and
`TLS_ECDHE_RSA_WITH_AES_256_GCM_SHA384`; `cipher_suites` narrows that list,
ignoring unknown names and raising `ValueError` if none remain.

## Other helpers

- `LogWriter(stream=None).write(data)` writes `data` behind a UTC timestamp
  with nanoseconds and returns the number of bytes written.
- `ConstantWriteStrategy(generator, writer, write_rate)` and
  `BurstWriteStrategy(generator, writer, BurstParameters(minimum, maximum, frequency))`
  call `writer(generator())` on a tick; `start_writer()` blocks until
  `stop()` is called from another thread.
- `SpyMetricRegistry` records metrics made with `new_counter(name, help_text, *options)`
  or `new_gauge(...)` and finds them with `get_metric(name, tags)` (raising
  `KeyError` if unknown) or `has_metric(name, tags)`; labels are set with
  `with_labels({...})`.

## What this package does not do

It has no wire protocol, servers or command-line programs. The `Client`,
`Pool` and `Connector` work with whatever ingress, dialer and streams you
pass in; they do not open network connections themselves.