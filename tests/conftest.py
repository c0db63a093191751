import os

# Configure before the app module is imported: in-memory store, fixed signing secret.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ACCESS_TOKEN_SECRET"] = "test-secret"
os.environ["SMTP_HOST"] = ""

import pytest

import app as app_module
from backend.credentials import issue_credential
from models import Todo, User, db


class RecordingMailer:
    def __init__(self):
        self.sent = []

    def send(self, to_addr, subject, body, subtype="html"):
        self.sent.append({"to": to_addr, "subject": subject, "body": body})
        return True


class ExplodingMailer:
    def send(self, to_addr, subject, body, subtype="html"):
        raise ConnectionRefusedError("smtp down")


@pytest.fixture
def app():
    flask_app = app_module.app
    flask_app.config.update(TESTING=True, ACCESS_TOKEN_SECRET="test-secret", DEBUG_EMAIL=True)
    original_mailer = flask_app.extensions["mailer"]
    flask_app.extensions["mailer"] = RecordingMailer()
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
    yield flask_app
    flask_app.extensions["mailer"] = original_mailer
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def mailer(app):
    return app.extensions["mailer"]


@pytest.fixture
def create_user(app):
    def _create(login="alice", password="secret123", email=None, verified=True, first_name="Alice", last_name="Smith"):
        with app.app_context():
            next_id = (db.session.query(db.func.max(User.id)).scalar() or 0) + 1
            user = User(
                id=next_id,
                first_name=first_name,
                last_name=last_name,
                login=login,
                email=email or f"{login}@example.com",
                email_verified=verified,
            )
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            return next_id

    return _create


@pytest.fixture
def get_user(app):
    def _get(login):
        with app.app_context():
            user = User.query.filter_by(login=login).first()
            if user is None:
                return None
            db.session.expunge(user)
            return user

    return _get


@pytest.fixture
def token_for(app):
    def _token(user_id, first_name="Alice", last_name="Smith"):
        with app.app_context():
            return issue_credential(first_name, last_name, user_id)

    return _token


@pytest.fixture
def create_todo(app):
    def _create(user_id, title="Task", **fields):
        with app.app_context():
            todo = Todo(user_id=user_id, title=title, **fields)
            db.session.add(todo)
            db.session.commit()
            return todo.id

    return _create


@pytest.fixture
def fetch_todo(app):
    def _fetch(todo_id):
        with app.app_context():
            todo = db.session.get(Todo, todo_id)
            return todo.to_dict() if todo else None

    return _fetch


@pytest.fixture
def api(client):
    """POST a JSON body with the credential attached."""

    def _post(path, token=None, **body):
        if token is not None:
            body["jwtToken"] = token
        return client.post(path, json=body)

    return _post


@pytest.fixture
def failing_mailer(app):
    app.extensions["mailer"] = ExplodingMailer()
    return app.extensions["mailer"]
