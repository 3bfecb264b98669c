from sqlalchemy.orm import DeclarativeBase, relationship
from sqlalchemy.schema import Column, ForeignKey, UniqueConstraint
from sqlalchemy.types import JSON, Boolean, DateTime, Integer, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from uuid6 import uuid7
from datetime import datetime


class Base(DeclarativeBase):
    pass


class Game(Base):
    __tablename__ = "games"
    id = Column(Uuid, primary_key=True, default=uuid7)
    user_id = Column(String, nullable=False, index=True)  # lowercase wallet address
    entry_fee_cents = Column(Integer, nullable=False)
    currency = Column(String, nullable=False, default="PYUSD")
    status = Column(String, nullable=False, default="CREATED")
    game_mode = Column(String, nullable=False, default="standard")
    player_case = Column(Integer, nullable=True)
    banker_offer_cents = Column(Integer, nullable=True)
    accepted_deal = Column(Boolean, nullable=False, default=False)
    final_won_cents = Column(Integer, nullable=True)
    burn_count = Column(Integer, nullable=False, default=0)  # bumped by every burn, guards concurrent burns
    payment_tx_hash = Column(String, nullable=True)
    contract_game_id = Column(String, nullable=True)
    contract_tx_hash = Column(String, nullable=True)
    prize_distributed = Column(Boolean, nullable=False, default=False)
    prize_distributing = Column(Boolean, nullable=False, default=False)  # payout claimed, transfer in flight
    prize_tx_hash = Column(String, nullable=True)
    prize_distribution_error = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.now)

    cards = relationship(
        "Card",
        back_populates="game",
        cascade="all, delete",
        order_by="Card.idx",
    )
    moves = relationship(
        "Move",
        back_populates="game",
        cascade="all, delete",
        order_by=lambda: [Move.created_at, Move.id],
    )


class Card(Base):
    __tablename__ = "cards"
    __table_args__ = (UniqueConstraint("game_id", "idx"),)
    id = Column(Uuid, primary_key=True, default=uuid7)
    game_id = Column(Uuid, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    idx = Column(Integer, nullable=False)
    value_cents = Column(Integer, nullable=False)
    revealed = Column(Boolean, nullable=False, default=False)
    burned = Column(Boolean, nullable=False, default=False)

    game = relationship("Game", back_populates="cards")


class Move(Base):
    __tablename__ = "moves"
    id = Column(Uuid, primary_key=True, default=uuid7)
    game_id = Column(Uuid, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    actor_user_id = Column(String, nullable=True)  # None is the banker
    action = Column(String, nullable=False)
    payload = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    created_at = Column(DateTime, default=datetime.now)

    game = relationship("Game", back_populates="moves")
