from leaderboard.core import CompetitionState, format_countdown, remaining_ticks


def test_round_trip_of_stored_record():
    state = CompetitionState(active=True, start_time=1000, end_time=11000)
    assert state.to_dict() == {"active": True, "startTime": 1000, "endTime": 11000}
    assert CompetitionState.from_dict(state.to_dict()) == state


def test_from_dict_tolerates_garbage():
    assert CompetitionState.from_dict(None) == CompetitionState()
    assert CompetitionState.from_dict("x") == CompetitionState()
    parsed = CompetitionState.from_dict({"active": "yes", "startTime": "1500", "endTime": float("nan")})
    assert parsed == CompetitionState(active=False, start_time=1500, end_time=None)


def test_state_classification():
    assert CompetitionState(active=True, start_time=1).is_running
    assert not CompetitionState(active=True).is_running
    assert CompetitionState(active=False, start_time=1, end_time=2).is_concluded
    fresh = CompetitionState()
    assert not fresh.is_running and not fresh.is_concluded


def test_remaining_ticks():
    assert remaining_ticks(0, 0, 10) == 10
    assert remaining_ticks(0, 2500, 10) == 8
    assert remaining_ticks(0, 10000, 10) == 0
    assert remaining_ticks(0, 15000, 10) == 0


def test_format_countdown():
    assert format_countdown(10) == "00:00:10"
    assert format_countdown(20 * 60) == "00:20:00"
    assert format_countdown(3723) == "01:02:03"
    assert format_countdown(-4) == "00:00:00"
    assert format_countdown(None) == "00:00:00"
