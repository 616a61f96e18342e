import threading
import unittest

from sysid_FitValidator.core.analyzer import CHART_TITLES, AnalyzerPlot, AnalyzerState
from sysid_FitValidator.core.errors import EmptyRunError, GainsMismatchError
from sysid_FitValidator.core.model import Storage
from helpers import make_run, make_storage


class _GateFlag:
    """Abort flag that parks the producer on its first check until released."""

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()

    def is_set(self):
        if not self.entered.is_set():
            self.entered.set()
            self.release.wait(timeout=5)
        return False


class _RacingAnalyzer(AnalyzerPlot):
    """Runs ``on_read`` once, right after the next read of ``state``."""

    on_read = None

    @property
    def state(self):
        value = self._state_value
        hook, self.on_read = self.on_read, None
        if hook is not None:
            hook()
        return value

    @state.setter
    def state(self, value):
        self._state_value = value


class AnalyzerPublishTests(unittest.TestCase):
    def setUp(self):
        self.data = make_storage(30, 30)
        self.starts = (self.data.slow[10].timestamp, self.data.fast[15].timestamp)

    def test_set_data_publishes_everything(self):
        analyzer = AnalyzerPlot()
        ok = analyzer.set_data(self.data, self.data, "Meters", [0.1, 1.0, 0.2], self.starts, "generic")
        self.assertTrue(ok)
        self.assertIs(AnalyzerState.PUBLISHED, analyzer.state)

        plot = analyzer.try_snapshot()
        for title in CHART_TITLES:
            self.assertTrue(plot.filtered[title], title)
        for title in CHART_TITLES[2:6]:
            self.assertEqual(30, len(plot.raw[title]), title)
        self.assertEqual(2, len(plot.quasistatic_sim))
        self.assertEqual(2, len(plot.dynamic_sim))
        self.assertEqual(2, len(plot.dt_mean_line))
        self.assertEqual((0.0, 0.0), plot.kv_fit[0])
        self.assertIsNotNone(plot.rmse)
        self.assertIsNotNone(plot.r_squared)
        # 29 stepped samples per run, minus one boundary each
        self.assertEqual(56, plot.n_points)
        self.assertEqual("Velocity (m / s)", plot.velocity_label)
        self.assertEqual("Acceleration (m / s^2)", plot.acceleration_label)

    def test_each_kind_runs(self):
        for kind, gains in (("generic", [0.1, 1.0, 0.2]),
                            ("elevator", [0.1, 1.0, 0.2, 0.4]),
                            ("arm", [0.1, 1.0, 0.2, 0.4])):
            analyzer = AnalyzerPlot()
            self.assertTrue(analyzer.set_data(self.data, self.data, "Radians", gains, (), kind), kind)
            self.assertEqual(1, len(analyzer.try_snapshot().quasistatic_sim), kind)

    def test_stationary_run_has_no_r_squared(self):
        still = Storage(make_run(5, voltage=0.0, vel=lambda i: 0.0),
                        make_run(5, t0=1.0, voltage=0.0, vel=lambda i: 0.0))
        analyzer = AnalyzerPlot()
        analyzer.set_data(still, still, "Feet", [0.0, 1.0, 0.5], (), "generic")
        plot = analyzer.try_snapshot()
        self.assertEqual(0.0, plot.rmse)
        self.assertIsNone(plot.r_squared)

    def test_contract_violations_fail_before_pass(self):
        analyzer = AnalyzerPlot()
        with self.assertRaises(GainsMismatchError):
            analyzer.set_data(self.data, self.data, "Meters", [0.1, 1.0, 0.2], (), "elevator")
        with self.assertRaises(ValueError):
            analyzer.set_data(self.data, self.data, "Meters", [0.1, 1.0, 0.2], (1, 2, 3, 4, 5), "generic")
        with self.assertRaises(EmptyRunError):
            analyzer.set_data(Storage(self.data.slow, []), self.data, "Meters", [0.1, 1.0, 0.2], (), "generic")
        self.assertIs(AnalyzerState.IDLE, analyzer.state)

    def test_set_raw_data_only_fills_raw_series(self):
        analyzer = AnalyzerPlot()
        self.assertTrue(analyzer.set_raw_data(self.data, "Rotations"))
        plot = analyzer.try_snapshot()
        self.assertEqual(30, len(plot.raw[CHART_TITLES[4]]))
        self.assertEqual([], plot.filtered[CHART_TITLES[0]])
        self.assertEqual([], plot.quasistatic_sim)
        self.assertEqual("Velocity (rot / s)", plot.velocity_label)

    def test_reset_data(self):
        analyzer = AnalyzerPlot()
        analyzer.set_data(self.data, self.data, "Meters", [0.1, 1.0, 0.2], (), "generic")
        analyzer.reset_data()
        self.assertIs(AnalyzerState.IDLE, analyzer.state)
        self.assertIsNone(analyzer.try_snapshot().rmse)


class AnalyzerCancellationTests(unittest.TestCase):
    def setUp(self):
        self.data = make_storage(30, 30)

    def test_aborted_pass_keeps_previous_output(self):
        analyzer = AnalyzerPlot()
        analyzer.set_data(self.data, self.data, "Meters", [0.1, 1.0, 0.2], (), "generic")
        before = analyzer.try_snapshot()

        abort = threading.Event()
        abort.set()
        ok = analyzer.set_data(self.data, self.data, "Meters", [0.5, 3.0, 0.9], (), "generic", abort)
        self.assertFalse(ok)
        self.assertIs(before, analyzer.try_snapshot())
        self.assertIs(AnalyzerState.PUBLISHED, analyzer.state)

    def test_aborted_first_pass_returns_to_idle(self):
        analyzer = AnalyzerPlot()
        abort = threading.Event()
        abort.set()
        self.assertFalse(analyzer.set_raw_data(self.data, "Meters", abort))
        self.assertIs(AnalyzerState.IDLE, analyzer.state)

    def test_consumer_sees_busy_then_cancel(self):
        analyzer = AnalyzerPlot()
        gate = _GateFlag()
        result = {}

        def produce():
            result["ok"] = analyzer.set_data(self.data, self.data, "Meters",
                                             [0.1, 1.0, 0.2], (), "generic", gate)

        worker = threading.Thread(target=produce)
        worker.start()
        self.assertTrue(gate.entered.wait(timeout=5))

        self.assertIsNone(analyzer.try_snapshot())
        self.assertIs(AnalyzerState.RUNNING, analyzer.state)
        analyzer.cancel()
        self.assertIs(AnalyzerState.CANCELLING, analyzer.state)

        gate.release.set()
        worker.join(timeout=5)
        self.assertFalse(result["ok"])
        self.assertIs(AnalyzerState.IDLE, analyzer.state)
        self.assertIsNotNone(analyzer.try_snapshot())

    def test_cancel_racing_publish_leaves_published(self):
        analyzer = _RacingAnalyzer()
        gate = _GateFlag()
        result = {}

        def produce():
            result["ok"] = analyzer.set_data(self.data, self.data, "Meters",
                                             [0.1, 1.0, 0.2], (), "generic", gate)

        worker = threading.Thread(target=produce)
        worker.start()
        self.assertTrue(gate.entered.wait(timeout=5))

        def let_producer_finish():
            # cancel has seen RUNNING; give the producer every chance to publish now
            gate.release.set()
            worker.join(timeout=1.0)

        analyzer.on_read = let_producer_finish
        analyzer.cancel()
        worker.join(timeout=5)

        self.assertTrue(result["ok"])
        self.assertIs(AnalyzerState.PUBLISHED, analyzer.state)
        self.assertFalse(analyzer._cancel.is_set())

    def test_cancel_after_publish_is_noop(self):
        analyzer = AnalyzerPlot()
        analyzer.set_data(self.data, self.data, "Meters", [0.1, 1.0, 0.2], (), "generic")
        analyzer.cancel()
        self.assertIs(AnalyzerState.PUBLISHED, analyzer.state)
        self.assertFalse(analyzer._cancel.is_set())

    def test_busy_indicator_rotates(self):
        frames = {AnalyzerPlot.busy_indicator(i * 0.05) for i in range(4)}
        self.assertEqual({"Loading |", "Loading /", "Loading -", "Loading \\"}, frames)


if __name__ == "__main__":
    unittest.main()
