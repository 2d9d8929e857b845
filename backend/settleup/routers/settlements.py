"""Settlements: who owes whom in a group, and recording/deleting payments."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from settleup.config import round_amount
from settleup.database import get_db
from settleup.models import User, Group, Expense, Settlement
from settleup.schemas import (
    DashboardStats, ExpenseRecord, GroupBalances, MemberInfo, SettlementCreate,
    SettlementRecord, SettlementRecorded, SettlementResponse, SettlementValidation,
)
from settleup.auth import get_current_user, get_member_group
from settleup.services.balance_calculator import (
    build_balance_report, calculate_group_balances, compute_net_balances, validate_settlement,
)

logger = logging.getLogger("settleup")

router = APIRouter(prefix="/settlements", tags=["settlements"])


def _ledger_records(db: Session, group_id: int) -> tuple[list[ExpenseRecord], list[SettlementRecord]]:
    """Expenses and settlements of a group as engine records, settlements oldest first."""
    expenses = db.query(Expense).filter(Expense.group_id == group_id).order_by(Expense.id).all()
    settlements = (
        db.query(Settlement)
        .filter(Settlement.group_id == group_id)
        .order_by(Settlement.date, Settlement.id)
        .all()
    )
    expense_records = [
        ExpenseRecord(
            id=e.id,
            amount=e.amount,
            payer_id=e.payer_id,
            participant_ids=[p.id for p in e.participants],
        )
        for e in expenses
    ]
    settlement_records = [
        SettlementRecord(
            id=s.id,
            from_user_id=s.from_user_id,
            to_user_id=s.to_user_id,
            amount=s.amount,
            date=s.date,
        )
        for s in settlements
    ]
    return expense_records, settlement_records


def _check_settlement(db: Session, group: Group, from_user_id: int, data: SettlementCreate) -> SettlementValidation:
    expenses, settlements = _ledger_records(db, group.id)
    simplified = calculate_group_balances(expenses, settlements)
    return validate_settlement(
        from_user_id,
        data.to_user_id,
        data.amount,
        simplified,
        member_ids=[m.id for m in group.members],
    )


@router.get("/balances/{group_id}", response_model=GroupBalances)
def get_group_balances(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = get_member_group(db, group_id, current_user)
    expenses, settlements = _ledger_records(db, group_id)
    report = build_balance_report(expenses, settlements, {m.id: m.name for m in group.members})
    return GroupBalances(
        group_id=group.id,
        group_name=group.name,
        members=[MemberInfo(id=m.id, name=m.name, email=m.email) for m in group.members],
        **report.model_dump(),
    )


@router.post("/validate", response_model=SettlementValidation)
def check_settlement(
    data: SettlementCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = get_member_group(db, data.group_id, current_user)
    from_user_id = data.from_user_id if data.from_user_id is not None else current_user.id
    return _check_settlement(db, group, from_user_id, data)


@router.post("", response_model=SettlementRecorded, status_code=201)
def record_settlement(
    data: SettlementCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = get_member_group(db, data.group_id, current_user)
    from_user_id = data.from_user_id if data.from_user_id is not None else current_user.id
    result = _check_settlement(db, group, from_user_id, data)
    if not result.is_valid:
        raise HTTPException(status_code=400, detail=result.reason)

    settlement = Settlement(
        group_id=group.id,
        from_user_id=from_user_id,
        to_user_id=data.to_user_id,
        amount=data.amount,
        description=(data.description or "").strip() or "Settlement payment",
        created_by_id=current_user.id,
    )
    if data.date is not None:
        settlement.date = data.date
    db.add(settlement)
    db.commit()
    db.refresh(settlement)

    logger.info(
        "Settlement recorded",
        extra={"extra_data": {
            "group_id": group.id,
            "settlement_id": settlement.id,
            "overpaid": result.warning is not None,
        }},
    )
    return SettlementRecorded(
        settlement=SettlementResponse.model_validate(settlement),
        warning=result.warning,
    )


@router.get("/group/{group_id}", response_model=list[SettlementResponse])
def list_settlements(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    get_member_group(db, group_id, current_user)
    settlements = (
        db.query(Settlement)
        .filter(Settlement.group_id == group_id)
        .order_by(Settlement.date.desc(), Settlement.id.desc())
        .all()
    )
    return [SettlementResponse.model_validate(s) for s in settlements]


@router.delete("/{settlement_id}", status_code=204)
def delete_settlement(
    settlement_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    settlement = db.query(Settlement).filter(Settlement.id == settlement_id).first()
    if not settlement:
        raise HTTPException(status_code=404, detail="Settlement not found")
    get_member_group(db, settlement.group_id, current_user)
    db.delete(settlement)
    db.commit()
    logger.info("Settlement deleted", extra={"extra_data": {"settlement_id": settlement_id}})


@router.get("/dashboard/{group_id}", response_model=DashboardStats)
def get_dashboard(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = get_member_group(db, group_id, current_user)
    expenses = db.query(Expense).filter(Expense.group_id == group_id).all()

    cat_totals: dict[str, float] = {}
    member_paid: dict[int, float] = {m.id: 0.0 for m in group.members}
    for e in expenses:
        cat = e.custom_category if e.category == "other" and e.custom_category else e.category
        cat_totals[cat] = round_amount(cat_totals.get(cat, 0) + e.amount)
        member_paid[e.payer_id] = member_paid.get(e.payer_id, 0.0) + e.amount

    expense_records, settlement_records = _ledger_records(db, group_id)
    net = compute_net_balances(calculate_group_balances(expense_records, settlement_records))
    member_map = {m.id: m.name for m in group.members}
    member_spending = [
        {"user_id": uid, "name": member_map.get(uid, str(uid)), "paid": round_amount(paid)}
        for uid, paid in member_paid.items()
    ]

    return DashboardStats(
        total_expenses=round_amount(sum(e.amount for e in expenses)),
        expense_count=len(expenses),
        category_totals=cat_totals,
        member_spending=member_spending,
        your_balance=round_amount(net.get(current_user.id, 0.0)),
    )
