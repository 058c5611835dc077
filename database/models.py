from datetime import datetime
from flask_login import UserMixin
from sqlalchemy.orm import relationship, synonym
from database import db
import uuid

class User(UserMixin, db.Model):
    """User account

    NOTE: id is the email string; stable_id is a UUID for external references.
    """
    __tablename__ = 'users'

    id = db.Column(db.String(120), primary_key=True)  # Email as ID
    email = synonym('id')
    stable_id = db.Column(db.String(36), unique=True, default=lambda: str(uuid.uuid4()))
    password_hash = db.Column(db.String(200))
    display_name = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_login = db.Column(db.DateTime)

    # Admins may score any match, everyone else only their own
    is_admin = db.Column(db.Boolean, default=False, nullable=False, index=True)
    is_banned = db.Column(db.Boolean, default=False, nullable=False)

    teams = relationship('Team', backref='owner', lazy=True, cascade="all, delete-orphan")
    matches = relationship('Match', backref='user', lazy=True, cascade="all, delete-orphan")

class Team(db.Model):
    """Cricket Team"""
    __tablename__ = 'teams'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(120), db.ForeignKey('users.id'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    short_code = db.Column(db.String(10), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Unique constraint: one short_code per user
    __table_args__ = (
        db.UniqueConstraint('user_id', 'short_code', name='uq_team_user_short_code'),
    )

    players = relationship('Player', backref='team', cascade='all, delete-orphan', order_by='Player.id')

    # Matches where this team played
    home_matches = relationship('Match', foreign_keys='Match.home_team_id', backref='home_team')
    away_matches = relationship('Match', foreign_keys='Match.away_team_id', backref='away_team')

class Player(db.Model):
    """Squad member; the live-scoring engine refers to players by id"""
    __tablename__ = 'players'

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('teams.id'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(50))  # Batsman, Bowler, All-rounder, Wicketkeeper
    is_captain = db.Column(db.Boolean, default=False)
    is_wicketkeeper = db.Column(db.Boolean, default=False)

    __table_args__ = (
        db.UniqueConstraint('team_id', 'name', name='uq_player_team_name'),
    )

class Match(db.Model):
    """Live match record.

    scoring_state holds the whole LiveMatch aggregate as JSON.  version is
    bumped on every save and checked by MatchStore.save_match so two ball
    submissions for the same match cannot both win.  The scalar columns
    mirror the aggregate for listing and filtering.
    """
    __tablename__ = 'matches'

    id = db.Column(db.String(36), primary_key=True)  # UUID
    user_id = db.Column(db.String(120), db.ForeignKey('users.id'), index=True)

    home_team_id = db.Column(db.Integer, db.ForeignKey('teams.id'), index=True)
    away_team_id = db.Column(db.Integer, db.ForeignKey('teams.id'), index=True)
    winner_team_id = db.Column(db.Integer, db.ForeignKey('teams.id'), nullable=True, index=True)

    # Match Details
    venue = db.Column(db.String(100))
    date = db.Column(db.DateTime, default=datetime.utcnow)
    status = db.Column(db.String(20), default='upcoming', nullable=False, index=True)
    result_description = db.Column(db.String(200)) # e.g., "CSK won by 4 wickets"
    overs_per_side = db.Column(db.Integer, default=20, nullable=False)

    # Toss Information
    toss_winner_team_id = db.Column(db.Integer, db.ForeignKey('teams.id'), nullable=True)
    toss_decision = db.Column(db.String(10))  # 'bat' or 'bowl'

    # Live scoring aggregate
    scoring_state = db.Column(db.JSON, nullable=False)
    version = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    toss_winner = relationship('Team', foreign_keys=[toss_winner_team_id])
    winner_team = relationship('Team', foreign_keys=[winner_team_id])
