from metrics import MetricsCollector


def test_metrics_increment_and_snapshot():
    mc = MetricsCollector()
    mc.increment("teach_me_actions")
    mc.increment("teach_me_actions", 2)
    mc.timing("oracle_latency_ms", 50)
    snap = mc.snapshot()
    assert snap["counters"]["teach_me_actions"] == 3
    assert "oracle_latency_ms" in snap["timers"]


def test_metrics_labels_render_sorted():
    mc = MetricsCollector()
    mc.increment("oracle_fallback_used", labels={"role": "analysis"})
    mc.increment("teach_me_calls_total", labels={"outcome": "ok", "operation": "start"})
    snap = mc.snapshot()
    assert snap["counters"]["oracle_fallback_used{role=analysis}"] == 1
    assert snap["counters"]["teach_me_calls_total{operation=start,outcome=ok}"] == 1
    assert mc.counter("oracle_fallback_used", {"role": "analysis"}) == 1
    assert mc.counter("oracle_fallback_used") == 0


def test_metrics_timed_and_reset():
    mc = MetricsCollector()
    with mc.timed("teach_me_elapsed_ms", labels={"operation": "answer"}):
        pass
    assert len(mc.snapshot()["timers"]["teach_me_elapsed_ms{operation=answer}"]) == 1
    mc.reset()
    assert mc.snapshot() == {"counters": {}, "timers": {}}
