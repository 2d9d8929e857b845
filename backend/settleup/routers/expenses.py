"""Expenses: create, list, get, update, delete. Always split equally."""
import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from settleup.database import get_db
from settleup.models import User, Group, Expense
from settleup.schemas import ExpenseCreate, ExpenseUpdate, ExpenseResponse, EXPENSE_CATEGORIES
from settleup.auth import get_current_user, get_member_group

router = APIRouter(prefix="/expenses", tags=["expenses"])


def _expense_response(exp: Expense) -> ExpenseResponse:
    return ExpenseResponse(
        id=exp.id,
        group_id=exp.group_id,
        payer_id=exp.payer_id,
        amount=exp.amount,
        description=exp.description,
        category=exp.category,
        custom_category=exp.custom_category,
        date=exp.date,
        created_at=exp.created_at,
        participant_ids=[p.id for p in exp.participants],
    )


def _check_amount(amount: float) -> None:
    if not math.isfinite(amount) or amount <= 0:
        raise HTTPException(status_code=400, detail="Amount must be greater than 0")


def _check_category(category: str) -> None:
    if category not in EXPENSE_CATEGORIES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid category. Must be one of: {', '.join(EXPENSE_CATEGORIES)}",
        )


def _resolve_participants(group: Group, participant_ids: list[int]) -> list[User]:
    if not participant_ids:
        raise HTTPException(status_code=400, detail="At least one participant required")
    wanted = set(participant_ids)
    participants = [m for m in group.members if m.id in wanted]
    if len(participants) != len(wanted):
        raise HTTPException(status_code=400, detail="All participants must be group members")
    return participants


def _get_expense(db: Session, expense_id: int, user: User) -> Expense:
    expense = db.query(Expense).filter(Expense.id == expense_id).first()
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    get_member_group(db, expense.group_id, user)
    return expense


@router.post("", response_model=ExpenseResponse, status_code=201)
def create_expense(
    data: ExpenseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = get_member_group(db, data.group_id, current_user)
    payer_id = data.payer_id if data.payer_id is not None else current_user.id
    if not any(m.id == payer_id for m in group.members):
        raise HTTPException(status_code=400, detail="Payer must be a group member")
    _check_amount(data.amount)
    _check_category(data.category)
    participants = _resolve_participants(group, data.participant_ids)

    expense = Expense(
        group_id=data.group_id,
        payer_id=payer_id,
        amount=data.amount,
        description=data.description.strip(),
        category=data.category,
        custom_category=data.custom_category if data.category == "other" else None,
    )
    if data.date is not None:
        expense.date = data.date
    expense.participants = participants
    db.add(expense)
    db.commit()
    db.refresh(expense)
    return _expense_response(expense)


@router.get("", response_model=list[ExpenseResponse])
def list_expenses(
    group_id: int,
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    get_member_group(db, group_id, current_user)
    q = db.query(Expense).filter(Expense.group_id == group_id)

    if search:
        q = q.filter(Expense.description.ilike(f"%{search}%"))
    if category:
        q = q.filter(Expense.category == category)

    expenses = q.order_by(Expense.date.desc(), Expense.id.desc()).offset(offset).limit(limit).all()
    return [_expense_response(e) for e in expenses]


@router.get("/{expense_id}", response_model=ExpenseResponse)
def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _expense_response(_get_expense(db, expense_id, current_user))


@router.patch("/{expense_id}", response_model=ExpenseResponse)
def update_expense(
    expense_id: int,
    data: ExpenseUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    expense = _get_expense(db, expense_id, current_user)

    if data.amount is not None:
        _check_amount(data.amount)
        expense.amount = data.amount
    if data.description is not None:
        expense.description = data.description.strip()
    if data.date is not None:
        expense.date = data.date
    if data.category is not None:
        _check_category(data.category)
        expense.category = data.category
    if data.custom_category is not None:
        expense.custom_category = data.custom_category
    if expense.category != "other":
        expense.custom_category = None
    if data.participant_ids is not None:
        expense.participants = _resolve_participants(expense.group, data.participant_ids)

    db.commit()
    db.refresh(expense)
    return _expense_response(expense)


@router.delete("/{expense_id}", status_code=204)
def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    expense = _get_expense(db, expense_id, current_user)
    db.delete(expense)
    db.commit()
