"""
심각도 컨트롤러 단위 테스트
"""

from sentinelnet.core.models import Severity


class TestSeverityController:
    """디바이스 응답 디스패치 테스트"""

    def test_low_has_no_effects(self, severity_controller, effects):
        signals = severity_controller.respond("LOW")
        assert signals.severity == Severity.LOW
        effects.vibrate.assert_not_called()
        effects.play_alarm_loop.assert_not_called()
        effects.play_alert_once.assert_not_called()

    def test_medium_vibrates_and_plays_once(self, severity_controller, effects):
        severity_controller.respond("MEDIUM")
        effects.vibrate.assert_called_once_with([200, 100, 200])
        effects.play_alert_once.assert_called_once()
        effects.play_alarm_loop.assert_not_called()

    def test_high_starts_alarm_loop(self, severity_controller, effects):
        severity_controller.respond(Severity.HIGH)
        effects.vibrate.assert_called_once_with([500, 200, 500, 200, 500])
        effects.play_alarm_loop.assert_called_once()
        effects.play_alert_once.assert_not_called()
        assert severity_controller.active_signals.level == 3

    def test_unknown_severity_treated_as_low(self, severity_controller, effects):
        signals = severity_controller.respond("CATASTROPHIC")
        assert signals.severity == Severity.LOW
        effects.vibrate.assert_not_called()

    def test_stop_responses_is_always_safe(self, severity_controller, effects):
        """활성 응답이 없어도 중지 가능"""
        severity_controller.stop_responses()
        severity_controller.stop_responses()
        assert effects.vibrate_stop.call_count == 2
        assert effects.stop_audio.call_count == 2
        assert severity_controller.active_signals is None

    def test_stop_after_respond(self, severity_controller, effects):
        severity_controller.respond("HIGH")
        severity_controller.stop_responses()
        effects.vibrate_stop.assert_called_once()
        effects.stop_audio.assert_called_once()
        assert severity_controller.active_signals is None

    def test_static_helpers(self, severity_controller):
        assert severity_controller.compare("HIGH", "MEDIUM") == 1
        assert severity_controller.signals_for("bogus") == severity_controller.signals_for("LOW")
