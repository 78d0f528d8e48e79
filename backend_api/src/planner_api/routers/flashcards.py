import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session, and_, col, or_, select

from ..db import get_session
from ..models import Flashcard, FlashcardDeck, QuizResult, StudySession, User
from ..reports import deck_stats, flashcard_stats
from ..schemas import (
    DeckCreate,
    DeckRead,
    DeckStats,
    FlashcardCreate,
    FlashcardRead,
    FlashcardStats,
    FlashcardUpdate,
    QuizResultCreate,
    QuizResultRead,
    SuccessResponse,
)
from ..security import get_current_user

logger = logging.getLogger(__name__)

flashcards_router = APIRouter(prefix="/flashcards", tags=["flashcards"])


def _deck_read(deck: FlashcardDeck, user_id: int) -> DeckRead:
    return DeckRead(
        id=deck.id,
        title=deck.title,
        description=deck.description,
        category=deck.category,
        is_public=deck.is_public,
        is_owner=deck.user_id == user_id,
        card_count=len(deck.cards),
        created_at=deck.created_at,
    )


def _owned_deck(session: Session, user_id: int, deck_id: int) -> FlashcardDeck:
    deck = session.get(FlashcardDeck, deck_id)
    if not deck or deck.user_id != user_id:
        raise HTTPException(status_code=404, detail="Deck not found")
    return deck


def _readable_deck(session: Session, user_id: int, deck_id: int) -> FlashcardDeck:
    """Own decks and public decks can be studied."""
    deck = session.get(FlashcardDeck, deck_id)
    if not deck or (deck.user_id != user_id and not deck.is_public):
        raise HTTPException(status_code=404, detail="Deck not found or access denied")
    return deck


def _owned_card(session: Session, user_id: int, card_id: int) -> Flashcard:
    card = session.get(Flashcard, card_id)
    if not card:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    if not card.deck or card.deck.user_id != user_id:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    return card


# =========================
# Decks
# =========================
# PUBLIC_INTERFACE
@flashcards_router.get(
    "/decks",
    response_model=List[DeckRead],
    summary="List decks",
    description="The user's decks plus public community decks, newest first, with card counts.",
)
def list_decks(
    user: User = Depends(get_current_user), session: Session = Depends(get_session)
) -> List[DeckRead]:
    stmt = (
        select(FlashcardDeck)
        .where(
            or_(
                FlashcardDeck.user_id == user.id,
                and_(FlashcardDeck.is_public == True, FlashcardDeck.user_id == None),  # noqa: E711,E712
            )
        )
        .order_by(col(FlashcardDeck.created_at).desc(), col(FlashcardDeck.id).desc())
    )
    return [_deck_read(d, user.id) for d in session.exec(stmt)]


# PUBLIC_INTERFACE
@flashcards_router.post(
    "/decks", response_model=DeckRead, status_code=status.HTTP_201_CREATED, summary="Create deck"
)
def create_deck(
    payload: DeckCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> DeckRead:
    deck = FlashcardDeck(user_id=user.id, **payload.model_dump())
    session.add(deck)
    session.commit()
    session.refresh(deck)
    return _deck_read(deck, user.id)


# PUBLIC_INTERFACE
@flashcards_router.get("/decks/{deck_id}", response_model=DeckRead, summary="Get deck")
def get_deck(
    deck_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> DeckRead:
    return _deck_read(_owned_deck(session, user.id, deck_id), user.id)


# PUBLIC_INTERFACE
@flashcards_router.delete("/decks/{deck_id}", response_model=SuccessResponse, summary="Delete deck")
def delete_deck(
    deck_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> SuccessResponse:
    """Delete a deck with its cards and quiz results; study sessions keep their history."""
    deck = _owned_deck(session, user.id, deck_id)
    for result in session.exec(select(QuizResult).where(QuizResult.deck_id == deck_id)):
        session.delete(result)
    for study in session.exec(select(StudySession).where(StudySession.deck_id == deck_id)):
        study.deck_id = None
        session.add(study)
    session.delete(deck)
    session.commit()
    logger.info("Deleted deck %s for user %s", deck_id, user.id)
    return SuccessResponse()


# PUBLIC_INTERFACE
@flashcards_router.get("/decks/{deck_id}/stats", response_model=DeckStats, summary="Deck statistics")
def get_deck_stats(
    deck_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> DeckStats:
    return deck_stats(session, user.id, _owned_deck(session, user.id, deck_id))


# =========================
# Cards
# =========================
# PUBLIC_INTERFACE
@flashcards_router.get("", response_model=List[FlashcardRead], summary="List cards of a deck")
def list_cards(
    deck_id: int = Query(...),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> List[FlashcardRead]:
    _readable_deck(session, user.id, deck_id)
    stmt = select(Flashcard).where(Flashcard.deck_id == deck_id).order_by(Flashcard.created_at, Flashcard.id)
    return [FlashcardRead.model_validate(c) for c in session.exec(stmt)]


# PUBLIC_INTERFACE
@flashcards_router.post("", response_model=FlashcardRead, status_code=status.HTTP_201_CREATED, summary="Create card")
def create_card(
    payload: FlashcardCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> FlashcardRead:
    _owned_deck(session, user.id, payload.deck_id)
    card = Flashcard(**payload.model_dump())
    session.add(card)
    session.commit()
    session.refresh(card)
    return FlashcardRead.model_validate(card)


# PUBLIC_INTERFACE
@flashcards_router.put("/{card_id}", response_model=FlashcardRead, summary="Update card")
def update_card(
    card_id: int,
    payload: FlashcardUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> FlashcardRead:
    card = _owned_card(session, user.id, card_id)
    for name, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(card, name, value)
    session.add(card)
    session.commit()
    session.refresh(card)
    return FlashcardRead.model_validate(card)


# PUBLIC_INTERFACE
@flashcards_router.delete("/{card_id}", response_model=SuccessResponse, summary="Delete card")
def delete_card(
    card_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> SuccessResponse:
    card = _owned_card(session, user.id, card_id)
    session.delete(card)
    session.commit()
    return SuccessResponse()


# =========================
# Quiz results & stats
# =========================
# PUBLIC_INTERFACE
@flashcards_router.post(
    "/quiz-results",
    response_model=QuizResultRead,
    status_code=status.HTTP_201_CREATED,
    summary="Record quiz result",
)
def create_quiz_result(
    payload: QuizResultCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> QuizResultRead:
    _readable_deck(session, user.id, payload.deck_id)
    result = QuizResult(user_id=user.id, **payload.model_dump())
    session.add(result)
    session.commit()
    session.refresh(result)
    return QuizResultRead.model_validate(result)


# PUBLIC_INTERFACE
@flashcards_router.get("/stats", response_model=FlashcardStats, summary="Flashcard statistics")
def get_stats(
    user: User = Depends(get_current_user), session: Session = Depends(get_session)
) -> FlashcardStats:
    """Deck count, mastery and review totals for the user."""
    return flashcard_stats(session, user.id)
