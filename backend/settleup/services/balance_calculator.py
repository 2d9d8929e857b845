"""Who owes whom in a group, and the fewest payments that would settle it.

Everything here is a pure function over records supplied by the caller:
expenses and recorded settlements go in, a pairwise debt table and a list
of suggested payments come out. Nothing is cached or persisted; callers
recompute on every read.

A debt table maps ``debtor -> creditor -> amount``.
"""
import logging
import math
from typing import Hashable, Iterable, Mapping, Optional

from settleup.config import (
    AMOUNT_EPSILON,
    CYCLE_BREAK_SUGGESTIONS,
    DIRECT_SUGGESTION_LIMIT,
    round_amount,
)
from settleup.schemas import (
    BalanceEntry,
    BalanceSummary,
    ExpenseRecord,
    GroupBalanceReport,
    SettlementRecord,
    SettlementValidation,
    SuggestedTransaction,
)

logger = logging.getLogger("settleup.balances")

DebtTable = dict[Hashable, dict[Hashable, float]]

UNKNOWN_USER = "Unknown User"
DIRECT_LABEL = "Direct settlement"
OPTIMAL_LABEL = "Optimal settlement"


def _ensure_pair(debts: DebtTable, a: Hashable, b: Hashable) -> None:
    debts.setdefault(a, {}).setdefault(b, 0.0)
    debts.setdefault(b, {}).setdefault(a, 0.0)


def build_gross_debts(expenses: Iterable[ExpenseRecord]) -> DebtTable:
    """Split every expense equally and record each share as owed to the payer."""
    debts: DebtTable = {}
    for expense in expenses:
        # A participant listed twice still pays one share.
        participants = list(dict.fromkeys(expense.participant_ids))
        if not participants:
            logger.warning(
                "Skipping expense without participants",
                extra={"extra_data": {"expense_id": expense.id}},
            )
            continue

        share = expense.amount / len(participants)
        for uid in participants:
            if uid == expense.payer_id:
                continue
            _ensure_pair(debts, uid, expense.payer_id)
            debts[uid][expense.payer_id] += share
    return debts


def apply_settlements(debts: DebtTable, settlements: Iterable[SettlementRecord]) -> DebtTable:
    """Fold recorded payments into a copy of ``debts``, in the order given.

    Paying more than is owed clears the debt and leaves the excess owed
    back by the receiver.
    """
    out: DebtTable = {debtor: dict(row) for debtor, row in debts.items()}
    for s in settlements:
        _ensure_pair(out, s.from_user_id, s.to_user_id)
        owed = out[s.from_user_id][s.to_user_id]
        if owed >= s.amount:
            out[s.from_user_id][s.to_user_id] = owed - s.amount
        else:
            out[s.from_user_id][s.to_user_id] = 0.0
            out[s.to_user_id][s.from_user_id] += s.amount - owed
    return out


def simplify_debts(debts: Mapping[Hashable, Mapping[Hashable, float]]) -> DebtTable:
    """Net each pair so at most one direction carries a (rounded) debt."""
    simplified: DebtTable = {}
    for debtor, row in debts.items():
        for creditor, amount in row.items():
            if debtor == creditor or amount <= 0:
                continue
            reverse = debts.get(creditor, {}).get(debtor, 0.0)
            net = round_amount(amount - reverse)
            if net > AMOUNT_EPSILON:
                simplified.setdefault(debtor, {})[creditor] = net
    return simplified


def compute_net_balances(simplified: Mapping[Hashable, Mapping[Hashable, float]]) -> dict[Hashable, float]:
    """user -> owed to them minus owed by them. Values always sum to zero."""
    balances: dict[Hashable, float] = {}
    for debtor, row in simplified.items():
        balances.setdefault(debtor, 0.0)
        for creditor, amount in row.items():
            balances[debtor] -= amount
            balances[creditor] = balances.get(creditor, 0.0) + amount
    return balances


def calculate_group_balances(
    expenses: Iterable[ExpenseRecord],
    settlements: Iterable[SettlementRecord],
) -> DebtTable:
    """Run the whole pipeline: gross debts, recorded payments, netting."""
    gross = build_gross_debts(expenses)
    return simplify_debts(apply_settlements(gross, settlements))


def _direct_suggestions(simplified: Mapping[Hashable, Mapping[Hashable, float]]) -> list[SuggestedTransaction]:
    return [
        SuggestedTransaction(
            from_user_id=debtor,
            to_user_id=creditor,
            amount=round_amount(amount),
            description=DIRECT_LABEL,
        )
        for debtor, row in simplified.items()
        for creditor, amount in row.items()
        if amount > AMOUNT_EPSILON
    ]


def suggest_settlements(simplified: Mapping[Hashable, Mapping[Hashable, float]]) -> list[SuggestedTransaction]:
    """
    Propose payments that would settle every balance in ``simplified``.

    Small tables are returned as their direct debts so people can see
    exactly who owes whom. Larger tables are collapsed to net balances and
    the biggest debtor is repeatedly matched with the biggest creditor.
    A group that only owes itself in a circle gets a couple of direct
    payments to break the circle.
    """
    direct = _direct_suggestions(simplified)
    if not direct:
        return []
    if len(direct) <= DIRECT_SUGGESTION_LIMIT:
        logger.debug("Suggesting direct settlements", extra={"extra_data": {"count": len(direct)}})
        return direct

    debtors = []  # [user_id, amount_owed]
    creditors = []
    for uid, bal in compute_net_balances(simplified).items():
        bal = round_amount(bal)
        if bal > AMOUNT_EPSILON:
            creditors.append([uid, bal])
        elif bal < -AMOUNT_EPSILON:
            debtors.append([uid, -bal])

    if not debtors and not creditors:
        logger.debug("Debts form a cycle, suggesting direct settlements to break it")
        return direct[:CYCLE_BREAK_SUGGESTIONS]

    debtors.sort(key=lambda x: -x[1])
    creditors.sort(key=lambda x: -x[1])

    out: list[SuggestedTransaction] = []
    i, j = 0, 0
    while i < len(debtors) and j < len(creditors):
        debtor, creditor = debtors[i], creditors[j]
        transfer = min(debtor[1], creditor[1])
        if transfer > AMOUNT_EPSILON:
            out.append(SuggestedTransaction(
                from_user_id=debtor[0],
                to_user_id=creditor[0],
                amount=round_amount(transfer),
                description=OPTIMAL_LABEL,
            ))
        debtor[1] -= transfer
        creditor[1] -= transfer
        if debtor[1] <= AMOUNT_EPSILON:
            i += 1
        if creditor[1] <= AMOUNT_EPSILON:
            j += 1

    logger.debug(
        "Optimised settlements",
        extra={"extra_data": {"direct": len(direct), "suggested": len(out)}},
    )
    return out


def validate_settlement(
    from_user_id: Hashable,
    to_user_id: Hashable,
    amount: float,
    simplified: Mapping[Hashable, Mapping[Hashable, float]],
    member_ids: Optional[Iterable[Hashable]] = None,
) -> SettlementValidation:
    """Check a payment before it is recorded.

    Paying more than is owed is allowed (the receiver then owes the
    difference back) but comes with a warning.
    """
    if from_user_id == to_user_id:
        return SettlementValidation(is_valid=False, reason="Cannot create settlement from user to themselves")
    if amount is None or not math.isfinite(amount) or amount <= 0:
        return SettlementValidation(is_valid=False, reason="Amount must be greater than 0")
    if member_ids is not None:
        members = set(member_ids)
        if from_user_id not in members or to_user_id not in members:
            return SettlementValidation(is_valid=False, reason="Both users must be members of the group")

    outstanding = round_amount(simplified.get(from_user_id, {}).get(to_user_id, 0.0))
    warning = None
    if amount - outstanding > AMOUNT_EPSILON:
        excess = round_amount(amount - outstanding)
        warning = (
            f"Amount exceeds the outstanding balance of {outstanding:.2f}; "
            f"the receiver will owe {excess:.2f} back"
        )
    return SettlementValidation(is_valid=True, warning=warning, outstanding=outstanding)


def format_balances_for_display(
    simplified: Mapping[Hashable, Mapping[Hashable, float]],
    names: Mapping[Hashable, str],
) -> list[BalanceEntry]:
    entries = []
    for debtor, row in simplified.items():
        for creditor, amount in row.items():
            if amount <= 0:
                continue
            from_name = names.get(debtor, UNKNOWN_USER)
            to_name = names.get(creditor, UNKNOWN_USER)
            entries.append(BalanceEntry(
                from_user_id=debtor,
                from_user_name=from_name,
                to_user_id=creditor,
                to_user_name=to_name,
                amount=amount,
                description=f"{from_name} owes {to_name}",
            ))
    entries.sort(key=lambda e: -e.amount)
    return entries


def build_balance_report(
    expenses: list[ExpenseRecord],
    settlements: list[SettlementRecord],
    names: Mapping[Hashable, str],
) -> GroupBalanceReport:
    """Everything a balances page needs: named debts, suggestions and totals."""
    simplified = calculate_group_balances(expenses, settlements)
    balances = format_balances_for_display(simplified, names)

    suggestions = []
    for s in suggest_settlements(simplified):
        s.from_user_name = names.get(s.from_user_id, UNKNOWN_USER)
        s.to_user_name = names.get(s.to_user_id, UNKNOWN_USER)
        suggestions.append(s)

    summary = BalanceSummary(
        total_outstanding=round_amount(sum(b.amount for b in balances)),
        total_settlements=len(settlements),
        suggested_transactions=len(suggestions),
    )
    return GroupBalanceReport(balances=balances, suggestions=suggestions, summary=summary)
