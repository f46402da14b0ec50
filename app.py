import os
import logging
import threading
from flask import Flask, render_template, request, jsonify
from flask_socketio import SocketIO, emit
from dotenv import load_dotenv
from errors import DataLoadError
from game import GameController, SubmitResult, OVER, PLAYING
from lexicon import LINES_PER_BATCH, load_files

load_dotenv()

logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(__file__)

# Total of the page's tile flip animation, in milliseconds
REVEAL_DELAY_MS = 4 * 70 + 210 + 4 * 200 + 600


class GameServer:
    """
    Shared lexicon load plus one GameController per socket connection.

    The load runs in a background task while connect/disconnect handlers
    touch the same registry, so readiness, registration and the hand-off
    to waiting connections all happen under one lock.
    """

    def __init__(self, dictionary_path, frequency_path, batch_size=LINES_PER_BATCH):
        self.dictionary_path = dictionary_path
        self.frequency_path = frequency_path
        self.batch_size = batch_size
        self.lexicon = None
        self.progress = 0.0
        self.error = None
        self.load_started = False
        # sid -> GameController, or None while the sid waits for the load
        self.controllers = {}
        self.lock = threading.Lock()

    @property
    def ready(self):
        return self.lexicon is not None

    def use_lexicon(self, lexicon):
        self.lexicon = lexicon
        self.progress = 1.0
        self.error = None
        self.load_started = True

    def new_controller(self):
        controller = GameController(self.lexicon)
        controller.start_round()
        return controller

    def register(self, sid):
        """
        Add a connection.

        Returns:
            (controller, start_load): the connection's new round if the
            lexicon is ready, and whether this connection must start the
            shared load
        """
        with self.lock:
            if self.error:
                return None, False
            if self.ready:
                controller = self.new_controller()
                self.controllers[sid] = controller
                return controller, False
            # Round starts once loading finishes
            self.controllers[sid] = None
            start_load = not self.load_started
            self.load_started = True
            return None, start_load

    def unregister(self, sid):
        with self.lock:
            self.controllers.pop(sid, None)

    def fail(self, message):
        logger.error("Game data failed to load: %s", message)
        with self.lock:
            self.error = message
        socketio.emit("load_failed", {"error": message})

    def load_lexicon(self):
        """Background task: parse the dictionary, then start every waiting round."""
        def on_batch(fraction):
            self.progress = fraction
            socketio.emit("load_progress", {"progress": fraction})
            socketio.sleep(0)

        try:
            lexicon = load_files(
                self.dictionary_path, self.frequency_path,
                batch_size=self.batch_size, yield_point=on_batch,
            )
        except DataLoadError as e:
            self.fail(str(e))
            return
        except Exception as e:
            logger.exception("Unexpected error while loading game data")
            self.fail(f"Unexpected error while loading game data: {e}")
            return

        with self.lock:
            self.use_lexicon(lexicon)
            # Connections that already hold a round keep it
            started = [(sid, self.new_controller()) for sid, controller in self.controllers.items() if controller is None]
            self.controllers.update(started)

        for sid, controller in started:
            socketio.emit("round_started", controller.snapshot(), to=sid)

    def status(self):
        return {
            "ready": self.ready,
            "progress": self.progress,
            "error": self.error,
            "candidates": len(self.lexicon.candidates) if self.ready else 0,
            "alphabet": list(self.lexicon.alphabet) if self.ready else [],
        }


# Flask app setup
def create_app():
    """Factory function to create and configure Flask app."""
    app = Flask(__name__)
    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-change-in-production")
    app.config["DICTIONARY_PATH"] = os.environ.get("DICTIONARY_PATH", os.path.join(BASE_DIR, "data", "dictionary.txt"))
    app.config["FREQUENCY_PATH"] = os.environ.get("FREQUENCY_PATH", os.path.join(BASE_DIR, "data", "frequency.txt"))
    app.config["LINES_PER_BATCH"] = int(os.environ.get("LINES_PER_BATCH", LINES_PER_BATCH))
    app.config["REVEAL_DELAY_MS"] = int(os.environ.get("REVEAL_DELAY_MS", REVEAL_DELAY_MS))
    if app.config["LINES_PER_BATCH"] < 1:
        raise ValueError("LINES_PER_BATCH must be at least 1")

    app.extensions["game_server"] = GameServer(
        app.config["DICTIONARY_PATH"],
        app.config["FREQUENCY_PATH"],
        batch_size=app.config["LINES_PER_BATCH"],
    )
    return app

app = create_app()

socketio = SocketIO(app, cors_allowed_origins="*")


def get_server():
    return app.extensions["game_server"]


# --------------------
# HTTP routes
# --------------------
@app.route("/")
def index():
    """Serve the game page."""
    return render_template("index.html", reveal_delay_ms=app.config["REVEAL_DELAY_MS"])


@app.route("/api/status")
def status():
    """Report dictionary load progress."""
    server = get_server()
    code = 500 if server.error else 200
    return jsonify(server.status()), code


# --------------------
# Socket events
# --------------------
@socketio.on("connect")
def on_connect():
    """Start a round, or the shared dictionary load if it has not run yet."""
    server = get_server()
    controller, start_load = server.register(request.sid)

    if controller is not None:
        emit("round_started", controller.snapshot())
        return

    if server.error:
        emit("load_failed", {"error": server.error})
        return

    emit("load_progress", {"progress": server.progress})
    if start_load:
        socketio.start_background_task(server.load_lexicon)


@socketio.on("key")
def on_key(data):
    """Process one key press from the page."""
    server = get_server()
    controller = server.controllers.get(request.sid)
    key = (data or {}).get("key", "")
    if controller is None or not key:
        return

    was_over = controller.phase == OVER
    result = controller.handle_key(key)

    if was_over and controller.phase == PLAYING:
        emit("round_started", controller.snapshot())
        return

    if isinstance(result, SubmitResult):
        if not result.accepted:
            emit("guess_error", {"error": result.error.message, "word": result.error.word})
        else:
            emit("guess_feedback", {
                "row": controller.state.current_row,
                "guess": result.guess.to_dict(),
                "keyboard": dict(controller.status),
                "reveal_delay_ms": app.config["REVEAL_DELAY_MS"],
            })

    emit("guess_input", {"text": controller.state.current_guess})


@socketio.on("finalize_row")
def on_finalize_row():
    """Called by the page once the reveal animation is done."""
    controller = get_server().controllers.get(request.sid)
    if controller is None or controller.finalize_row() is None:
        return

    if controller.phase == OVER:
        payload = controller.snapshot()
        payload["message"] = controller.outcome_message()
        emit("round_over", payload)
    else:
        emit("row_finalized", controller.snapshot())


@socketio.on("disconnect")
def on_disconnect(reason=None):
    """Drop the connection's round."""
    get_server().unregister(request.sid)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    port = int(os.environ.get("PORT", 5000))
    socketio.run(app, host="0.0.0.0", port=port, debug=True, allow_unsafe_werkzeug=True)
