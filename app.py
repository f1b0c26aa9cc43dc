import logging
import threading
import time
from uuid import uuid4

from cachetools import TTLCache
from flask import Flask, render_template, request, session, jsonify
from flask_cors import CORS

import ai_service
from config import Config
from models import Difficulty, Language, QuizConfig, TaskType, Topic
from quiz import QuizSession, QuizStateError, labels

# Configure logging
logging.basicConfig(level=Config.LOG_LEVEL)
logger = logging.getLogger(__name__)

for warning in Config.validate_config():
    logger.warning(warning)

app = Flask(__name__,
           template_folder='.')  # Look for templates in current directory

# Configure app
app.config.from_object(Config)
app.secret_key = Config.SECRET_KEY

# Enable CORS for all routes (allow credentials for session cookies)
CORS(app, supports_credentials=True)

if Config.OPENAI_API_KEY:
	logger.info(f"OpenAI API key set: {Config.OPENAI_API_KEY[:6]}...")
else:
	logger.warning("OPENAI_API_KEY not found in environment variables")


class SessionStore:
	"""In-memory quiz sessions keyed by the id kept in the Flask session cookie.

	Sessions idle for longer than ``ttl`` seconds are dropped, and once more
	than ``max_sessions`` are held the least recently used one is evicted.
	"""

	def __init__(self, service=ai_service, ttl=Config.SESSION_TTL_SECONDS,
				 max_sessions=Config.MAX_SESSIONS, clock=time.monotonic):
		self.service = service
		self._sessions = TTLCache(maxsize=max_sessions, ttl=ttl, timer=clock)
		self._lock = threading.Lock()

	def get(self, quiz_id):
		with self._lock:
			quiz = self._sessions.get(quiz_id)
			if quiz is None:
				quiz = QuizSession(service=self.service)
				logger.info(f"Created quiz session {quiz_id}")
			# Writing back restarts the idle timer
			self._sessions[quiz_id] = quiz
			return quiz

	def __len__(self):
		with self._lock:
			self._sessions.expire()
			return len(self._sessions)


store = SessionStore()


def current_quiz():
	quiz_id = session.get("quiz_id")
	if not quiz_id:
		quiz_id = str(uuid4())
		session["quiz_id"] = quiz_id
	return store.get(quiz_id)


def _options():
	return {
		"difficulties": [d.value for d in Difficulty],
		"topics": [t.value for t in Topic],
		"taskTypes": [t.value for t in TaskType],
		"languages": [lang.value for lang in Language],
	}


def _quiz_response(quiz, status=200):
	return jsonify({"ok": True, "quiz": quiz.to_dict()}), status


def _json_body():
	data = request.get_json(silent=True)
	if data is None:
		data = request.form.to_dict()
	if not isinstance(data, dict):
		return {}
	return data


@app.route("/")
def index():
	quiz = current_quiz()
	return render_template(
		"index.html",
		options=_options(),
		labels=labels(quiz.config.language),
		quiz=quiz.to_dict(),
	)


@app.route('/health', methods=['GET'])
def health_check():
	"""Health check endpoint"""
	return jsonify({
		'status': 'healthy',
		'message': 'JavaMaster AI is running',
		'version': '1.0.0',
		'model': Config.OPENAI_MODEL,
		'openai': 'Configured' if Config.OPENAI_API_KEY else 'Missing API key',
		'sessions': len(store),
	})


@app.route("/api/options", methods=["GET"])
def api_options():
	return jsonify({"ok": True, "options": _options()})


@app.route("/api/quiz", methods=["GET"])
def api_get_quiz():
	return _quiz_response(current_quiz())


@app.route("/api/quiz/config", methods=["POST"])
def api_update_config():
	quiz = current_quiz()
	try:
		quiz.update_config(_json_body())
	except ValueError as e:
		return jsonify({"ok": False, "error": str(e)}), 400
	return _quiz_response(quiz)


@app.route("/api/quiz/start", methods=["POST"])  # Generate a question via OpenAI
def api_start_quiz():
	quiz = current_quiz()
	data = _json_body()
	if data:
		# Validate before clearing so a bad request leaves the current quiz intact
		try:
			config = QuizConfig.from_dict(data, base=quiz.config)
		except ValueError as e:
			return jsonify({"ok": False, "error": str(e)}), 400
		quiz.back_to_setup()
		quiz.config = config
	quiz.start()
	return _quiz_response(quiz)


@app.route("/api/quiz/code", methods=["PUT", "POST"])
def api_update_code():
	quiz = current_quiz()
	data = _json_body()
	code = data.get("code")
	if not isinstance(code, str):
		return jsonify({"ok": False, "error": "code is required"}), 400
	quiz.edit(code)
	return _quiz_response(quiz)


@app.route("/api/quiz/run", methods=["POST"])  # Simulate execution via OpenAI
def api_run_code():
	quiz = current_quiz()
	data = _json_body()
	if isinstance(data.get("code"), str):
		quiz.edit(data["code"])
	quiz.run()
	return _quiz_response(quiz)


@app.route("/api/quiz/reset", methods=["POST"])
def api_reset_code():
	quiz = current_quiz()
	quiz.reset()
	return _quiz_response(quiz)


@app.route("/api/quiz/finish", methods=["POST"])  # Grade the exam via OpenAI
def api_finish_exam():
	quiz = current_quiz()
	data = _json_body()
	if isinstance(data.get("code"), str):
		quiz.edit(data["code"])
	quiz.finish()
	return _quiz_response(quiz)


@app.route("/api/quiz/dismiss", methods=["POST"])
def api_dismiss_result():
	quiz = current_quiz()
	quiz.dismiss_result()
	return _quiz_response(quiz)


@app.route("/api/quiz/setup", methods=["POST"])
def api_back_to_setup():
	quiz = current_quiz()
	quiz.back_to_setup()
	return _quiz_response(quiz)


# Security headers
@app.after_request
def add_security_headers(resp):
	resp.headers["X-Frame-Options"] = "DENY"
	resp.headers["X-Content-Type-Options"] = "nosniff"
	resp.headers["Referrer-Policy"] = "no-referrer"
	return resp


# Error handlers
@app.errorhandler(QuizStateError)
def quiz_state_error(error):
	return jsonify({"ok": False, "error": str(error)}), 409


@app.errorhandler(ai_service.AIServiceError)
def ai_service_error(error):
	logger.error(f"AI service error: {error}")
	return jsonify({"ok": False, "error": str(error) or "AI service unavailable"}), 502


@app.errorhandler(404)
def not_found(error):
	"""Handle 404 errors"""
	return jsonify({
		'ok': False,
		'error': 'Endpoint not found'
	}), 404

@app.errorhandler(405)
def method_not_allowed(error):
	"""Handle 405 errors"""
	return jsonify({
		'ok': False,
		'error': 'Method not allowed'
	}), 405

@app.errorhandler(500)
def internal_error(error):
	"""Handle 500 errors"""
	logger.error(f"Internal server error: {error}")
	return jsonify({
		'ok': False,
		'error': 'Internal server error'
	}), 500

if __name__ == "__main__":
	app.run(host=Config.HOST, port=Config.PORT, debug=Config.DEBUG, threaded=True)
