"""
Tests for the Flask routes and socket events.
"""
import pytest

from app import GameServer, app, create_app, socketio
from game import GameController
from conftest import DICTIONARY, make_lexicon


@pytest.fixture
def server():
    original = app.extensions["game_server"]
    game_server = GameServer("unused", "unused")
    game_server.use_lexicon(make_lexicon("plant"))
    app.extensions["game_server"] = game_server
    yield game_server
    app.extensions["game_server"] = original


@pytest.fixture
def client(server):
    test_client = socketio.test_client(app)
    yield test_client
    if test_client.is_connected():
        test_client.disconnect()


def events(test_client, name):
    return [msg["args"][0] if msg["args"] else None
            for msg in test_client.get_received() if msg["name"] == name]


def press(test_client, keys):
    for key in keys:
        test_client.emit("key", {"key": key})


def test_index_page(server):
    response = app.test_client().get("/")
    assert response.status_code == 200
    assert b"phoneme-keyboard" in response.data


def test_status_ready(server):
    response = app.test_client().get("/api/status")
    assert response.status_code == 200
    data = response.get_json()
    assert data["ready"] is True
    assert data["progress"] == 1.0
    assert data["candidates"] == 1
    assert "AE" in data["alphabet"]


def test_connect_starts_round(client, server):
    started = events(client, "round_started")
    assert len(started) == 1
    assert started[0]["phase"] == "playing"
    assert started[0]["target"] is None
    assert len(server.controllers) == 1


def test_typing_echoes_input(client):
    client.get_received()
    press(client, ["p", "l", "Backspace"])
    assert [e["text"] for e in events(client, "guess_input")] == ["P", "PL", "P"]


def test_unknown_word_reports_error(client):
    client.get_received()
    press(client, list("XYZZY") + ["Enter"])
    received = client.get_received()
    errors = [m["args"][0] for m in received if m["name"] == "guess_error"]
    assert errors == [{"error": "Word not in dictionary", "word": "XYZZY"}]
    assert received[-1]["name"] == "guess_input"
    assert received[-1]["args"][0]["text"] == ""


def test_guess_then_finalize_continues(client, server):
    client.get_received()
    press(client, list("STAND") + ["Enter"])
    feedback = events(client, "guess_feedback")
    assert feedback[0]["guess"]["feedback"] == ["absent", "present", "correct", "correct", "absent"]
    assert feedback[0]["row"] == 0
    assert feedback[0]["reveal_delay_ms"] == app.config["REVEAL_DELAY_MS"]

    # Locked out until the page finalizes the row
    press(client, ["A"])
    controller = next(iter(server.controllers.values()))
    assert controller.state.current_guess == ""

    client.emit("finalize_row")
    finalized = events(client, "row_finalized")
    assert finalized[0]["phase"] == "playing"
    assert finalized[0]["row"] == 1


def test_win_and_restart(client):
    client.get_received()
    press(client, list("PLANT") + ["Enter"])
    client.emit("finalize_row")
    over = events(client, "round_over")
    assert over[0]["outcome"] == "won"
    assert over[0]["target"] == "PLANT"
    assert over[0]["message"]["text"] == "You won!"

    press(client, ["Enter"])
    restarted = events(client, "round_started")
    assert restarted[0]["phase"] == "playing"
    assert restarted[0]["guesses"] == []


def test_finalize_without_guess_is_ignored(client):
    client.get_received()
    client.emit("finalize_row")
    assert client.get_received() == []


def test_disconnect_drops_round(client, server):
    client.disconnect()
    assert server.controllers == {}


def test_load_failure_is_reported(server):
    server.lexicon = None
    server.error = "Could not read game data"
    test_client = socketio.test_client(app)
    assert events(test_client, "load_failed") == [{"error": "Could not read game data"}]
    assert app.test_client().get("/api/status").status_code == 500
    test_client.disconnect()


def waiting_server(tmp_path, batch_size=4):
    """A server whose dictionary load has not run yet."""
    dictionary_path = tmp_path / "dictionary.txt"
    frequency_path = tmp_path / "frequency.txt"
    dictionary_path.write_text(DICTIONARY, encoding="utf-8")
    frequency_path.write_text("plant\n", encoding="utf-8")

    waiting = GameServer(str(dictionary_path), str(frequency_path), batch_size=batch_size)
    # Marked as started so connecting does not spawn the background task
    waiting.load_started = True
    app.extensions["game_server"] = waiting
    return waiting


def test_waiting_connection_starts_after_load(server, tmp_path):
    waiting = waiting_server(tmp_path)

    test_client = socketio.test_client(app)
    assert events(test_client, "load_progress") == [{"progress": 0.0}]

    waiting.load_lexicon()
    received = test_client.get_received()
    progress = [m["args"][0]["progress"] for m in received if m["name"] == "load_progress"]
    assert progress[-1] == 1.0
    started = [m["args"][0] for m in received if m["name"] == "round_started"]
    assert started[0]["phase"] == "playing"
    assert waiting.ready
    test_client.disconnect()


def test_load_keeps_rounds_already_in_progress(server, tmp_path):
    waiting = waiting_server(tmp_path)
    first = socketio.test_client(app)
    (first_sid,) = waiting.controllers
    second = socketio.test_client(app)
    (second_sid,) = set(waiting.controllers) - {first_sid}
    first.get_received()
    second.get_received()

    # The second connection already holds a round with a guess in it
    playing = GameController(make_lexicon("plant"))
    playing.start_round()
    playing.submit_guess("STAND")
    waiting.controllers[second_sid] = playing

    waiting.load_lexicon()

    assert waiting.controllers[second_sid] is playing
    assert len(playing.state.guesses) == 1
    assert events(second, "round_started") == []
    assert len(events(first, "round_started")) == 1
    assert waiting.controllers[first_sid] is not None
    first.disconnect()
    second.disconnect()


def test_connect_after_load_gets_one_round(server, tmp_path):
    waiting = waiting_server(tmp_path)
    waiting.load_lexicon()

    test_client = socketio.test_client(app)
    assert len(events(test_client, "round_started")) == 1
    (controller,) = waiting.controllers.values()
    assert controller.phase == "playing"
    test_client.disconnect()


def test_disconnect_while_waiting_leaves_no_round(server, tmp_path):
    waiting = waiting_server(tmp_path)
    test_client = socketio.test_client(app)
    test_client.disconnect()

    waiting.load_lexicon()
    assert waiting.ready
    assert waiting.controllers == {}


def test_load_lexicon_failure(server, tmp_path):
    broken = GameServer(str(tmp_path / "missing.txt"), str(tmp_path / "missing_too.txt"))
    broken.load_lexicon()
    assert not broken.ready
    assert "Could not read game data" in broken.error


def test_unexpected_load_error_reaches_waiting_page(server, tmp_path):
    broken = waiting_server(tmp_path, batch_size=0)
    test_client = socketio.test_client(app)
    test_client.get_received()

    broken.load_lexicon()

    assert not broken.ready
    assert "batch_size must be at least 1" in broken.error
    failed = events(test_client, "load_failed")
    assert failed == [{"error": broken.error}]
    assert app.test_client().get("/api/status").status_code == 500
    test_client.disconnect()


def test_create_app_rejects_bad_batch_size(monkeypatch):
    monkeypatch.setenv("LINES_PER_BATCH", "0")
    with pytest.raises(ValueError):
        create_app()
