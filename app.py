import os

from dotenv import load_dotenv
from flask import Flask, request, jsonify, redirect, make_response

load_dotenv()

from models import db, User, Todo
from backend.credentials import CredentialConfigError, require_credential
from backend.mailer import SmtpMailer
from services import agenda_routes, auth_routes, todo_routes

DEFAULT_CORS_ORIGINS = 'http://localhost:5173,http://cop4331-group5.xyz,https://cop4331-group5.xyz'

app = Flask(__name__)
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///todo.db')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')
app.config['ACCESS_TOKEN_SECRET'] = os.environ.get('ACCESS_TOKEN_SECRET')
app.config['ACCESS_TOKEN_TTL_MINUTES'] = os.environ.get('ACCESS_TOKEN_TTL_MINUTES')  # unset: no time-based expiry
app.config['FRONTEND_BASE_URL'] = os.environ.get('FRONTEND_BASE_URL', 'http://localhost:5173')
app.config['BACKEND_BASE_URL'] = os.environ.get('BACKEND_BASE_URL', 'http://localhost:5000')
app.config['DEBUG_EMAIL'] = os.environ.get('DEBUG_EMAIL', '0').lower() in ['1', 'true', 'yes', 'on']
app.config['SMTP_HOST'] = os.environ.get('SMTP_HOST')
app.config['SMTP_PORT'] = int(os.environ.get('SMTP_PORT', 587))
app.config['SMTP_USER'] = os.environ.get('SMTP_USER')
app.config['SMTP_PASSWORD'] = os.environ.get('SMTP_PASSWORD')
app.config['SMTP_FROM'] = os.environ.get('SMTP_FROM')
app.config['CORS_ORIGINS'] = [
    o.strip() for o in os.environ.get('CORS_ORIGINS', DEFAULT_CORS_ORIGINS).split(',') if o.strip()
]
app.logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO').upper())

db.init_app(app)
app.extensions['mailer'] = SmtpMailer.from_config(app.config, logger=app.logger)

with app.app_context():
    db.create_all()


def get_mailer():
    return app.extensions['mailer']


@app.before_request
def _log_request():
    app.logger.info("%s %s", request.method, request.path)
    if request.method == 'OPTIONS':
        return make_response('', 204)


@app.after_request
def _cors_headers(response):
    origin = request.headers.get('Origin')
    if origin and origin in app.config['CORS_ORIGINS']:
        response.headers['Access-Control-Allow-Origin'] = origin
        response.headers['Vary'] = 'Origin'
        response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PATCH, DELETE, OPTIONS'
        response.headers['Access-Control-Allow-Headers'] = (
            'Origin, X-Requested-With, Content-Type, Accept, Authorization'
        )
    return response


@app.errorhandler(CredentialConfigError)
def _credential_config_error(exc):
    app.logger.error("Credential configuration error: %s", exc)
    return jsonify({'error': str(exc), 'jwtToken': ''}), 500


# Authentication / account routes
@app.route('/api/login', methods=['POST'])
def login():
    return auth_routes.login()


@app.route('/api/register', methods=['POST'])
def register():
    return auth_routes.register()


@app.route('/api/request-email-verification', methods=['POST'])
def request_email_verification():
    return auth_routes.request_email_verification()


@app.route('/api/verify-email', methods=['POST'])
def verify_email():
    return auth_routes.verify_email()


@app.route('/api/verify-email-link', methods=['GET'])
def verify_email_link():
    return auth_routes.verify_email_link()


@app.route('/api/request-password-reset', methods=['POST'])
def request_password_reset():
    return auth_routes.request_password_reset()


@app.route('/api/verify-reset-code', methods=['POST'])
def verify_reset_code():
    return auth_routes.verify_reset_code()


@app.route('/api/reset-password-with-code', methods=['POST'])
def reset_password_with_code():
    return auth_routes.reset_password_with_code()


@app.route('/api/reset-password-with-token', methods=['POST'])
def reset_password_with_token():
    return auth_routes.reset_password_with_token()


# Todo routes
@app.route('/api/addtodo', methods=['POST'])
def add_todo():
    return todo_routes.add_todo()


@app.route('/api/deletetodo', methods=['POST'])
def delete_todo():
    return todo_routes.delete_todo()


@app.route('/api/edittodo', methods=['POST'])
def edit_todo():
    return todo_routes.edit_todo()


@app.route('/api/gettodos', methods=['POST'])
def get_todos():
    return todo_routes.get_todos()


@app.route('/api/check', methods=['POST'])
def check_todo():
    return todo_routes.check_todo()


@app.route('/api/check-bulk', methods=['POST'])
def check_bulk():
    return todo_routes.check_bulk()


@app.route('/api/next-day', methods=['POST'])
def next_day():
    return todo_routes.next_day()


# Bucketed views
@app.route('/api/current', methods=['POST'])
def current_todos():
    return agenda_routes.current_todos()


@app.route('/api/previous', methods=['POST'])
def previous_todos():
    return agenda_routes.previous_todos()


@app.route('/api/timeline', methods=['POST'])
def timeline():
    return agenda_routes.timeline()


if __name__ == '__main__':
    # Import by module name so the service modules share this app instance.
    from app import app as application
    application.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)), debug=True)
