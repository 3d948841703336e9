from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import validates

db = SQLAlchemy()


def fold_username(username):
    """Case-folded form used to treat 'Émile' and 'ÉMILE' as one user"""
    return username.casefold()


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), nullable=False)
    username_key = db.Column(db.String(300), unique=True, nullable=False)

    # Relationships
    availabilities = db.relationship('Availability', backref='user', lazy=True, cascade='all, delete-orphan')

    @validates('username')
    def _sync_username_key(self, key, value):
        self.username_key = fold_username(value)
        return value

    @staticmethod
    def find_by_username(username):
        """Case-insensitive lookup so 'Alice' and 'alice' are the same person"""
        return User.query.filter_by(username_key=fold_username(username)).first()

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username
        }


class Availability(db.Model):
    """One availability flag for one user on one calendar day"""
    __tablename__ = 'availability'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    available = db.Column(db.Boolean, nullable=False, default=True)

    # At most one row per user per day
    __table_args__ = (
        db.UniqueConstraint('user_id', 'date', name='unique_availability_per_user_date'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'date': self.date.isoformat(),
            'available': self.available
        }
