from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime

db = SQLAlchemy()


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    # id is assigned explicitly as max(existing) + 1 at registration
    id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    first_name = db.Column(db.String(80), nullable=False, default='')
    last_name = db.Column(db.String(80), nullable=False, default='')
    login = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=True)
    password_hash = db.Column(db.String(256), nullable=False)

    email_verified = db.Column(db.Boolean, default=False, nullable=False)
    verification_code = db.Column(db.String(6), nullable=True)
    verification_token = db.Column(db.String(64), nullable=True)
    verification_expires = db.Column(db.DateTime, nullable=True)

    reset_code = db.Column(db.String(6), nullable=True)
    reset_token = db.Column(db.String(64), nullable=True)
    reset_expires = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    todos = db.relationship('Todo', backref='owner', lazy=True, cascade="all, delete-orphan")

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def clear_verification(self):
        self.verification_code = None
        self.verification_token = None
        self.verification_expires = None

    def clear_reset(self):
        self.reset_code = None
        self.reset_token = None
        self.reset_expires = None


class Todo(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    completed = db.Column(db.Boolean, default=False, nullable=False)
    completed_at = db.Column(db.DateTime, nullable=True)
    start_date = db.Column(db.DateTime, nullable=True)
    due_date = db.Column(db.DateTime, nullable=True)
    priority = db.Column(db.String(10), default='Low', nullable=False)  # Low | Medium | High
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)

    def set_completed(self, flag, when=None):
        """Flip the completion flag, keeping completed_at in step with it."""
        flag = bool(flag)
        if not flag:
            self.completed_at = None
        elif not self.completed or self.completed_at is None:
            self.completed_at = when or datetime.now()
        self.completed = flag
        return flag

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'title': self.title,
            'description': self.description or '',
            'completed': bool(self.completed),
            'completedAt': _iso(self.completed_at),
            'startDate': _iso(self.start_date),
            'dueDate': _iso(self.due_date),
            'priority': self.priority or 'Low',
            'createdAt': _iso(self.created_at),
        }
