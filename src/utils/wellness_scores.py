"""Financial and insurance wellness score calculations"""
import math
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

ESSENTIAL_POLICY_WEIGHTS = {"health": 20, "auto": 10, "life": 10}
ADDITIONAL_POLICY_TYPES = ("disability", "umbrella", "home")
ADDITIONAL_POLICY_POINTS = 7
LIFE_COVER_INCOME_MULTIPLE = 10
POLICY_REVIEW_WINDOW = timedelta(days=180)

LIFE_INSURANCE_RECOMMENDATIONS = [
    "Consider term life insurance for temporary needs",
    "Review coverage annually or after major life events",
    "Consider permanent life insurance for estate planning",
]


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def calculate_financial_health_score(
    monthly_income: float = 0,
    monthly_expenses: float = 0,
    current_savings: float = 0,
    monthly_investments: float = 0,
    debts: Optional[Iterable[float]] = None
) -> int:
    """
    Financial health score from 0 to 100

    - Savings rate: up to 30
    - Emergency fund (months of expenses saved): up to 25
    - Investment rate: up to 25
    - Debt burden: no debt adds 20, otherwise up to 20 is deducted
    """
    score = 0.0

    if monthly_income and monthly_expenses:
        savings_rate = (monthly_income - monthly_expenses) / monthly_income * 100
        score += min(savings_rate * 1.5, 30)

    if current_savings and monthly_expenses:
        months_of_expenses = current_savings / monthly_expenses
        score += min(months_of_expenses * 4, 25)

    if monthly_investments and monthly_income:
        investment_rate = monthly_investments / monthly_income * 100
        score += min(investment_rate * 2.5, 25)

    debts = list(debts or [])
    if debts and monthly_income:
        debt_to_income = sum(debts) / (monthly_income * 12) * 100
        score -= min(debt_to_income * 0.5, 20)
    else:
        score += 20

    return max(0, min(100, round_half_up(score)))


def calculate_goal_progress(
    current_amount: float,
    target_amount: float,
    target_date: datetime,
    created_at: datetime,
    now: Optional[datetime] = None
) -> Dict[str, any]:
    """
    Progress toward a savings goal

    A goal is on track when the saved share is at least the elapsed share of
    the time between creation and the target date.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    progress = current_amount / target_amount * 100 if target_amount else 0
    days_left = math.ceil((target_date - now) / timedelta(days=1))

    total_span = target_date - created_at
    elapsed_share = (now - created_at) / total_span * 100 if total_span else 100

    return {
        "percentage": min(100, round_half_up(progress)),
        "amount": current_amount,
        "remaining": target_amount - current_amount,
        "days_remaining": max(0, days_left),
        "on_track": progress >= elapsed_share,
    }


def calculate_insurance_coverage_score(
    policies: List[Dict[str, any]],
    annual_income: float = 0,
    now: Optional[datetime] = None
) -> int:
    """
    Insurance coverage score up to 100

    Args:
        policies: [{'type': str, 'coverage_amount': float, 'added_at': datetime}]
        annual_income: Used for the 10x income life cover rule
    """
    if now is None:
        now = datetime.now(timezone.utc)

    score = 0.0
    existing_types = {p["type"] for p in policies}

    for policy_type, weight in ESSENTIAL_POLICY_WEIGHTS.items():
        if policy_type in existing_types:
            score += weight

    if annual_income:
        life_coverage = sum(p.get("coverage_amount", 0) for p in policies if p["type"] == "life")
        adequate = annual_income * LIFE_COVER_INCOME_MULTIPLE
        score += 30 if life_coverage >= adequate else life_coverage / adequate * 30

    score += sum(ADDITIONAL_POLICY_POINTS for t in ADDITIONAL_POLICY_TYPES if t in existing_types)

    review_cutoff = now - POLICY_REVIEW_WINDOW
    if any(p.get("added_at") and p["added_at"] >= review_cutoff for p in policies):
        score += 10

    return min(100, round_half_up(score))


def _premium_rate_per_thousand(age: int) -> float:
    if age < 30:
        return 1.5
    if age < 40:
        return 2.0
    if age < 50:
        return 3.5
    return 6.0


def calculate_life_insurance_needs(
    annual_income: float,
    dependents: int,
    debts: float,
    years_of_income: int,
    existing_coverage: float = 0,
    funeral_expenses: float = 15000,
    education_expenses: float = 0,
    age: int = 35
) -> Dict[str, any]:
    """
    Life insurance needs using the DIME method (debt, income, mortgage, education)

    Income replacement is scaled by half a year per dependent (at least 1x).
    """
    income_replacement = annual_income * years_of_income
    dependent_multiplier = max(1, dependents * 0.5)
    total_needs = income_replacement * dependent_multiplier + debts + funeral_expenses + education_expenses
    additional_needed = max(0, total_needs - existing_coverage)

    premium = additional_needed / 1000 * _premium_rate_per_thousand(age)

    return {
        "total_needs": total_needs,
        "existing_coverage": existing_coverage,
        "additional_coverage_needed": additional_needed,
        "breakdown": {
            "income_replacement": income_replacement * dependent_multiplier,
            "debts": debts,
            "funeral_expenses": funeral_expenses,
            "education_expenses": education_expenses,
        },
        "estimated_annual_premium": round_half_up(premium),
        "recommendations": list(LIFE_INSURANCE_RECOMMENDATIONS),
    }
