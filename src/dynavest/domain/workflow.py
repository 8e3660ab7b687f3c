from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal
from types import MappingProxyType
from typing import ClassVar, Protocol, Union

from dynavest.domain.errors import DynavestError, InvalidRequest
from dynavest.domain.models import (
    PERCENT_TOTAL,
    AllocationLeg,
    RiskTier,
    StrategyDescriptor,
)

NEXT = "next"


class InvalidTransition(DynavestError):
    def __init__(self, kind: str, action: str) -> None:
        super().__init__(f"{kind} has no transition for action '{action}'")
        self.kind = kind
        self.action = action


class PortfolioPlanner(Protocol):
    def plan_all(self, chain_id: int) -> dict[RiskTier, list[AllocationLeg]]: ...


class StrategyCatalog(Protocol):
    def by_risk(
        self, risk: RiskTier, chain_ids: Iterable[int] | None = None
    ) -> list[StrategyDescriptor]: ...


@dataclass(frozen=True)
class WorkflowContext:
    planner: PortfolioPlanner
    catalog: StrategyCatalog


def _checked_legs(legs: Sequence[AllocationLeg]) -> tuple[AllocationLeg, ...]:
    legs = tuple(legs)
    total = sum(leg.allocation_percent for leg in legs)
    if legs and total != PERCENT_TOTAL:
        raise InvalidRequest(f"leg allocations must sum to {PERCENT_TOTAL}, got {total}")
    return legs


@dataclass(frozen=True)
class InvestState:
    kind: ClassVar[str] = "invest"
    amount: Decimal
    chain_id: int


@dataclass(frozen=True)
class PortfolioState:
    kind: ClassVar[str] = "portfolio"
    amount: Decimal
    chain_id: int
    strategies_set: Mapping[RiskTier, tuple[AllocationLeg, ...]]
    risk: RiskTier = RiskTier.LOW

    def __post_init__(self) -> None:
        frozen = {RiskTier(tier): tuple(legs) for tier, legs in dict(self.strategies_set).items()}
        object.__setattr__(self, "strategies_set", MappingProxyType(frozen))

    @property
    def label(self) -> str:
        return f"Portfolio: {self.amount} USDC"

    @property
    def strategies(self) -> tuple[AllocationLeg, ...]:
        return self.strategies_set.get(self.risk, ())

    def with_risk(self, risk: RiskTier | str) -> PortfolioState:
        return replace(self, risk=RiskTier(risk))


@dataclass(frozen=True)
class EditState:
    kind: ClassVar[str] = "edit"
    amount: Decimal
    chain_id: int
    strategies: tuple[AllocationLeg, ...]

    def with_strategies(self, legs: Sequence[AllocationLeg]) -> EditState:
        return replace(self, strategies=_checked_legs(legs))


@dataclass(frozen=True)
class ReviewPortfolioState:
    kind: ClassVar[str] = "review_portfolio"
    amount: Decimal
    chain_id: int
    strategies: tuple[AllocationLeg, ...]


@dataclass(frozen=True)
class DepositState:
    kind: ClassVar[str] = "deposit"
    amount: Decimal
    chain_id: int
    strategies: tuple[AllocationLeg, ...]


@dataclass(frozen=True)
class BuildPortfolioState:
    kind: ClassVar[str] = "build_portfolio"
    amount: Decimal
    strategies: tuple[AllocationLeg, ...]


@dataclass(frozen=True)
class TextState:
    kind: ClassVar[str] = "text"
    text: str = ""


@dataclass(frozen=True)
class FindStrategiesState:
    kind: ClassVar[str] = "find_strategies"
    risk: RiskTier
    chain_ids: tuple[int, ...]


@dataclass(frozen=True)
class StrategiesCardsState:
    kind: ClassVar[str] = "strategies_cards"
    risk: RiskTier
    chain_ids: tuple[int, ...]
    cards: tuple[StrategyDescriptor, ...] = field(default=())


WorkflowState = Union[
    InvestState,
    PortfolioState,
    EditState,
    ReviewPortfolioState,
    DepositState,
    BuildPortfolioState,
    TextState,
    FindStrategiesState,
    StrategiesCardsState,
]

Transition = Callable[[WorkflowState, WorkflowContext], WorkflowState]


def _plan_portfolio(state: InvestState | DepositState, ctx: WorkflowContext) -> PortfolioState:
    planned = ctx.planner.plan_all(state.chain_id)
    return PortfolioState(amount=state.amount, chain_id=state.chain_id, strategies_set=planned)


def _to_build(
    state: PortfolioState | ReviewPortfolioState | DepositState, ctx: WorkflowContext
) -> BuildPortfolioState:
    return BuildPortfolioState(amount=state.amount, strategies=tuple(state.strategies))


def _to_edit(state: PortfolioState | ReviewPortfolioState, ctx: WorkflowContext) -> EditState:
    return EditState(amount=state.amount, chain_id=state.chain_id, strategies=tuple(state.strategies))


def _to_deposit(state: PortfolioState | ReviewPortfolioState, ctx: WorkflowContext) -> DepositState:
    return DepositState(amount=state.amount, chain_id=state.chain_id, strategies=tuple(state.strategies))


def _to_review(state: EditState, ctx: WorkflowContext) -> ReviewPortfolioState:
    return ReviewPortfolioState(
        amount=state.amount, chain_id=state.chain_id, strategies=_checked_legs(state.strategies)
    )


def _to_text(state: BuildPortfolioState, ctx: WorkflowContext) -> TextState:
    titles = ", ".join(leg.descriptor.title or leg.strategy_id for leg in state.strategies)
    return TextState(text=f"Portfolio built: {titles}" if titles else "Portfolio built")


def _to_cards(state: FindStrategiesState, ctx: WorkflowContext) -> StrategiesCardsState:
    cards = ctx.catalog.by_risk(state.risk, state.chain_ids)
    return StrategiesCardsState(risk=state.risk, chain_ids=state.chain_ids, cards=tuple(cards))


TRANSITIONS: Mapping[tuple[str, str], Transition] = MappingProxyType(
    {
        ("invest", NEXT): _plan_portfolio,
        ("portfolio", "build"): _to_build,
        ("portfolio", "edit"): _to_edit,
        ("portfolio", "deposit"): _to_deposit,
        ("edit", NEXT): _to_review,
        ("review_portfolio", "build"): _to_build,
        ("review_portfolio", "edit"): _to_edit,
        ("review_portfolio", "deposit"): _to_deposit,
        ("deposit", "build"): _to_build,
        ("deposit", "portfolio"): _plan_portfolio,
        ("build_portfolio", NEXT): _to_text,
        ("find_strategies", NEXT): _to_cards,
    }
)


def allowed_actions(state: WorkflowState) -> list[str]:
    return [action for kind, action in TRANSITIONS if kind == state.kind]


def is_terminal(state: WorkflowState) -> bool:
    return not allowed_actions(state)


def transition(state: WorkflowState, ctx: WorkflowContext, action: str = NEXT) -> WorkflowState:
    step = TRANSITIONS.get((state.kind, action))
    if step is None:
        raise InvalidTransition(state.kind, action)
    return step(state, ctx)
