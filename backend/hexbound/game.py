"""
Turn and phase state machine for HexBound.

Game owns the board, the state and the deferred-callback scheduler. Every
intent goes through Game.step(), which returns True when the action was
applied and False (with a log entry) when it was rejected.
"""
import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from . import economy, rules
from .board import MIN_RADIUS, BoardGraph
from .config import GameConfig
from .errors import IllegalActionError
from .logging_config import GameEventLogger, get_logger
from .roads import LARGEST_ARMY_RECORD, update_largest_army, update_longest_road
from .scheduler import TurnScheduler
from .state import (
    ENVIRONMENT_WINNER,
    RESOURCE_TYPES,
    DestructionEvent,
    DevCardType,
    GameMode,
    GameState,
    Phase,
    Player,
    ResourceType,
    Terrain,
    TradeOffer,
)

logger = get_logger(__name__)

# Shrinking mode: survivors must hold a structure within this many central rings
CENTRAL_RINGS = 2
FRIENDLY_ROBBER_LIMIT = 2
STARTING_RESOURCES = (ResourceType.WOOD, ResourceType.BRICK, ResourceType.SHEEP, ResourceType.WHEAT)


class Action(Enum):
    """Actions that can be taken in the game."""
    SETUP_PLACE_SETTLEMENT = "setup_place_settlement"
    SETUP_PLACE_ROAD = "setup_place_road"
    ROLL_DICE = "roll_dice"
    DISCARD_RESOURCES = "discard_resources"
    MOVE_ROBBER = "move_robber"
    STEAL_RESOURCE = "steal_resource"
    BUILD_ROAD = "build_road"
    BUILD_SETTLEMENT = "build_settlement"
    BUILD_CITY = "build_city"
    BUY_DEV_CARD = "buy_dev_card"
    PLAY_DEV_CARD = "play_dev_card"
    TRADE_BANK = "trade_bank"
    PROPOSE_TRADE = "propose_trade"
    ACCEPT_TRADE = "accept_trade"
    DECLINE_TRADE = "decline_trade"
    END_TURN = "end_turn"


@dataclass(frozen=True)
class BuildRoadPayload:
    """Payload for BUILD_ROAD and SETUP_PLACE_ROAD."""
    edge_id: str


@dataclass(frozen=True)
class BuildSettlementPayload:
    """Payload for BUILD_SETTLEMENT and SETUP_PLACE_SETTLEMENT."""
    vertex_id: str


@dataclass(frozen=True)
class BuildCityPayload:
    """Payload for BUILD_CITY action."""
    vertex_id: str


@dataclass(frozen=True)
class PlayDevCardPayload:
    """Payload for PLAY_DEV_CARD action."""
    card_type: DevCardType
    # For year_of_plenty: the two resources to take
    year_of_plenty_resources: Optional[Tuple[ResourceType, ResourceType]] = None
    # For monopoly: resource type to collect from all opponents
    monopoly_resource: Optional[ResourceType] = None


@dataclass(frozen=True)
class TradeBankPayload:
    """Payload for TRADE_BANK action."""
    give: ResourceType
    receive: ResourceType


@dataclass(frozen=True)
class ProposeTradePayload:
    """Payload for PROPOSE_TRADE action."""
    target_player_id: int
    give: Dict[ResourceType, int]  # Proposer gives
    receive: Dict[ResourceType, int]  # Proposer receives


@dataclass(frozen=True)
class MoveRobberPayload:
    """Payload for MOVE_ROBBER action."""
    hex_id: str
    robber_index: int = 0


@dataclass(frozen=True)
class StealResourcePayload:
    """Payload for STEAL_RESOURCE action."""
    victim_id: int


@dataclass(frozen=True)
class DiscardResourcesPayload:
    """Payload for DISCARD_RESOURCES action."""
    resources: Dict[ResourceType, int]


ActionPayload = Union[
    BuildRoadPayload,
    BuildSettlementPayload,
    BuildCityPayload,
    PlayDevCardPayload,
    TradeBankPayload,
    ProposeTradePayload,
    MoveRobberPayload,
    StealResourcePayload,
    DiscardResourcesPayload,
]


def victory_points(state: GameState, player: Player, include_hidden: bool = True) -> int:
    """Settlement 1, city 2, longest road 2, largest army 2, plus VP cards when hidden points count."""
    points = len(player.settlements) + 2 * len(player.cities)
    if state.longest_road_holder == player.id:
        points += 2
    if state.largest_army_holder == player.id:
        points += 2
    if include_hidden:
        points += player.victory_point_cards()
    return points


def snake_order(player_count: int) -> List[int]:
    """Placement order: ascending through all players, then descending."""
    forward = list(range(player_count))
    return forward + forward[::-1]


class Game:
    """
    A running game: board, state, scheduler and registered scripted players.

    Scripted players are objects registered with add_agent(); the game calls
    their take_turn(), respond_to_trade() and choose_discard() hooks.
    """

    def __init__(
        self,
        players: List[Player],
        config: Optional[GameConfig] = None,
        board: Optional[BoardGraph] = None,
        rng: Optional[random.Random] = None,
    ):
        if not players:
            raise ValueError("A game needs at least one player")
        if len(players) > 10:
            raise ValueError(f"At most 10 players are supported, got {len(players)}")

        self.config = config or GameConfig()
        self.rng = rng or random.Random(self.config.seed)
        self.board = board or BoardGraph(rng=self.rng).generate(self.config.radius)
        self.board.destruction_listeners.append(self._on_destroyed)

        self.state = GameState(
            players=players,
            mode=self.config.mode,
            win_target=self.config.win_target,
            friendly_robber=self.config.friendly_robber,
        )
        self.state.bank = economy.create_bank(len(players), len(self.board.hexes))
        self.state.deck = economy.create_deck(len(players), len(self.board.hexes), self.rng)
        for player in players:
            for resource in STARTING_RESOURCES:
                economy.grant(self.state, player, resource, self.config.starting_hand)
        self.state.robbers = self._initial_robbers(self.config.robber_count)
        self.state.placement_order = snake_order(len(players))
        self.state.current_player_index = self.state.placement_order[0]

        self.scheduler = TurnScheduler(lambda: self.state.turn_token)
        self.events = GameEventLogger(self.state.history, self.config.history_size)
        self.agents: Dict[int, Any] = {}
        self.destroyed: List[DestructionEvent] = []

        self._handlers: Dict[Action, Callable[[int, Any], None]] = {
            Action.SETUP_PLACE_SETTLEMENT: self._handle_setup_place_settlement,
            Action.SETUP_PLACE_ROAD: self._handle_setup_place_road,
            Action.ROLL_DICE: self._handle_roll_dice,
            Action.DISCARD_RESOURCES: self._handle_discard_resources,
            Action.MOVE_ROBBER: self._handle_move_robber,
            Action.STEAL_RESOURCE: self._handle_steal_resource,
            Action.BUILD_ROAD: self._handle_build_road,
            Action.BUILD_SETTLEMENT: self._handle_build_settlement,
            Action.BUILD_CITY: self._handle_build_city,
            Action.BUY_DEV_CARD: self._handle_buy_dev_card,
            Action.PLAY_DEV_CARD: self._handle_play_dev_card,
            Action.TRADE_BANK: self._handle_trade_bank,
            Action.PROPOSE_TRADE: self._handle_propose_trade,
            Action.ACCEPT_TRADE: self._handle_accept_trade,
            Action.DECLINE_TRADE: self._handle_decline_trade,
            Action.END_TURN: self._handle_end_turn,
        }

        logger.info(
            "game_created",
            players=len(players),
            mode=self.state.mode.value,
            radius=self.board.radius,
            deck=len(self.state.deck),
        )

    # ------------------------------------------------------------------
    # Setup helpers
    # ------------------------------------------------------------------

    def _initial_robbers(self, count: int) -> List[str]:
        deserts = sorted(hid for hid, hx in self.board.hexes.items() if hx.terrain == Terrain.DESERT)
        robbers = deserts[:count]
        others = sorted(hid for hid in self.board.hexes if hid not in robbers)
        while len(robbers) < count and others:
            choice = self.rng.choice(others)
            others.remove(choice)
            robbers.append(choice)
        return robbers

    def add_agent(self, player_id: int, agent: Any):
        """Register a scripted controller for a player."""
        player = self.state.player(player_id)
        player.is_ai = True
        self.agents[player_id] = agent
        if player_id == self.state.current_player.id and self.state.phase != Phase.GAME_OVER:
            self._begin_turn()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def step(self, action: Action, payload: Optional[ActionPayload] = None,
             player_id: Optional[int] = None) -> bool:
        """
        Apply one intent.

        Args:
            action: The action to perform
            payload: Optional payload for the action
            player_id: Acting player. Defaults to the current player; needed
                for out-of-turn actions (discards, trade responses).

        Returns:
            True if the action was applied, False if it was rejected.
        """
        handler = self._handlers.get(action)
        if handler is None:
            raise ValueError(f"Unknown action: {action}")

        actor = player_id if player_id is not None else self.state.current_player.id
        try:
            if self.state.phase == Phase.GAME_OVER:
                raise IllegalActionError("The game is over")
            handler(actor, payload)
        except IllegalActionError as exc:
            self.events.event(
                "action_rejected",
                f"{action.value} rejected: {exc}",
                level="warning",
                action=action.value,
                player_id=actor,
            )
            return False

        self._refresh_victory_points()
        self._check_victory()
        return True

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _require_phase(self, phase: Phase):
        if self.state.phase != phase:
            raise IllegalActionError(f"Not allowed during {self.state.phase.value}")

    def _require_turn(self, actor: int) -> Player:
        current = self.state.current_player
        if actor != current.id:
            raise IllegalActionError(f"It is not player {actor}'s turn")
        return current

    def _require_main_step(self, actor: int) -> Player:
        """Current player, dice rolled, robber fully resolved."""
        self._require_phase(Phase.PLAY)
        player = self._require_turn(actor)
        if not self.state.has_rolled:
            raise IllegalActionError("Roll the dice first")
        if self.state.robber_pending:
            raise IllegalActionError("Resolve the robber first")
        return player

    @staticmethod
    def _require_payload(payload: Any, payload_type: type, action: Action):
        if not isinstance(payload, payload_type):
            raise IllegalActionError(f"{action.value} requires {payload_type.__name__}")

    # ------------------------------------------------------------------
    # Initial placement
    # ------------------------------------------------------------------

    def _handle_setup_place_settlement(self, actor: int, payload: Optional[ActionPayload]):
        self._require_phase(Phase.INITIAL_PLACEMENT)
        player = self._require_turn(actor)
        self._require_payload(payload, BuildSettlementPayload, Action.SETUP_PLACE_SETTLEMENT)
        if self.state.placement_settlement is not None:
            raise IllegalActionError("Place a road next to your new settlement first")
        if not rules.can_place_settlement(self.board, payload.vertex_id, player.id,
                                          Phase.INITIAL_PLACEMENT, self.state.mode):
            raise IllegalActionError(f"Cannot place a settlement at {payload.vertex_id}")

        vertex = self.board.vertices[payload.vertex_id]
        vertex.owner = player.id
        player.settlements.append(vertex.id)
        player.stats.settlements_built += 1
        self.state.placement_settlement = vertex.id

        # Every placement after the first round yields its adjacent resources
        if self.state.placement_step >= len(self.state.players):
            for hx in self.board.hexes_of_vertex(vertex.id):
                if hx.resource is not None:
                    player.stats.resources_produced += economy.grant(self.state, player, hx.resource, 1)

        self.events.event("settlement_placed", f"{player.name} placed a settlement",
                          player_id=player.id, vertex_id=vertex.id)

    def _handle_setup_place_road(self, actor: int, payload: Optional[ActionPayload]):
        self._require_phase(Phase.INITIAL_PLACEMENT)
        player = self._require_turn(actor)
        self._require_payload(payload, BuildRoadPayload, Action.SETUP_PLACE_ROAD)
        anchor = self.state.placement_settlement
        if anchor is None:
            raise IllegalActionError("Place a settlement first")
        edge = self.board.get_edge(payload.edge_id)
        if edge is None or anchor not in edge.vertex_ids:
            raise IllegalActionError("The road must touch the settlement just placed")
        if not rules.can_place_road(self.board, edge.id, player.id, Phase.INITIAL_PLACEMENT, self.state.mode):
            raise IllegalActionError(f"Cannot place a road at {edge.id}")

        edge.owner = player.id
        player.roads.append(edge.id)
        player.stats.roads_built += 1
        self.state.placement_settlement = None
        self.state.placement_step += 1
        self.events.event("road_placed", f"{player.name} placed a road",
                          player_id=player.id, edge_id=edge.id)

        if self.state.placement_step >= len(self.state.placement_order):
            self._start_play()
        else:
            self.state.current_player_index = self.state.placement_order[self.state.placement_step]
            self.state.turn_token += 1
            self._begin_turn()

    def _start_play(self):
        self.state.phase = Phase.PLAY
        self.state.current_player_index = 0
        self.state.turn_token += 1
        self.state.rotation = 0
        self.events.event("play_started", "Initial placement complete, play begins")
        self._begin_turn()

    # ------------------------------------------------------------------
    # Dice and robber
    # ------------------------------------------------------------------

    def roll_values(self) -> Tuple[int, int]:
        """Roll two six-sided dice."""
        return self.rng.randint(1, 6), self.rng.randint(1, 6)

    def _handle_roll_dice(self, actor: int, payload: Optional[ActionPayload]):
        self._require_phase(Phase.PLAY)
        player = self._require_turn(actor)
        if self.state.has_rolled:
            raise IllegalActionError("Dice already rolled this turn")
        if self.state.robber_pending:
            raise IllegalActionError("Resolve the robber first")

        self.state.dice = self.roll_values()
        self.state.has_rolled = True
        total = self.state.dice_total
        self.events.event("dice_rolled", f"{player.name} rolled {total}",
                          player_id=player.id, dice=list(self.state.dice))

        if total != 7:
            gains = economy.produce(self.state, self.board, total)
            for pid, resources in gains.items():
                got = {r.value: n for r, n in resources.items() if n}
                logger.debug("resources_produced", player_id=pid, resources=got)
            return

        threshold = self.config.discard_threshold
        self.state.pending_discards = {
            p.id: math.ceil(p.total_resources() / 2)
            for p in self.state.active_players()
            if p.total_resources() > threshold
        }
        self.state.awaiting_robber = self._robber_can_move()

        for pid in list(self.state.pending_discards):
            agent = self.agents.get(pid)
            if agent is None:
                continue
            owed = self.state.pending_discards[pid]
            cards = agent.choose_discard(self, self.state.player(pid), owed)
            if not self.step(Action.DISCARD_RESOURCES, DiscardResourcesPayload(cards), player_id=pid):
                logger.error("scripted_discard_failed", player_id=pid, owed=owed)

    def _handle_discard_resources(self, actor: int, payload: Optional[ActionPayload]):
        self._require_phase(Phase.PLAY)
        self._require_payload(payload, DiscardResourcesPayload, Action.DISCARD_RESOURCES)
        owed = self.state.pending_discards.get(actor)
        if owed is None:
            raise IllegalActionError(f"Player {actor} does not need to discard")
        total = sum(payload.resources.values())
        if total != owed:
            raise IllegalActionError(f"Must discard exactly {owed} resources, got {total}")

        player = self.state.player(actor)
        economy.discard(self.state, player, payload.resources)
        del self.state.pending_discards[actor]
        self.events.event("resources_discarded", f"{player.name} discarded {owed} cards",
                          player_id=actor, count=owed)

        # A scripted turn holder waiting on human discards can carry on
        agent = self.agents.get(self.state.current_player.id)
        if not self.state.pending_discards and agent is not None and actor not in self.agents:
            self.scheduler.schedule(self.config.ai_think_delay, lambda: agent.take_turn(self),
                                    label="ai_resume")

    def _handle_move_robber(self, actor: int, payload: Optional[ActionPayload]):
        self._require_phase(Phase.PLAY)
        player = self._require_turn(actor)
        self._require_payload(payload, MoveRobberPayload, Action.MOVE_ROBBER)
        if not self.state.awaiting_robber:
            raise IllegalActionError("The robber does not need to move")
        if self.state.pending_discards:
            waiting = sorted(self.state.pending_discards)
            raise IllegalActionError(f"Players {waiting} still need to discard")
        if self.board.get_hex(payload.hex_id) is None:
            raise IllegalActionError(f"Hex {payload.hex_id} not found")
        if not 0 <= payload.robber_index < len(self.state.robbers):
            raise IllegalActionError(f"No robber with index {payload.robber_index}")
        if payload.hex_id in self.state.robbers:
            raise IllegalActionError("A robber is already on this hex")

        self.state.robbers[payload.robber_index] = payload.hex_id
        self.state.awaiting_robber = False
        self.events.event("robber_moved", f"{player.name} moved the robber",
                          player_id=player.id, hex_id=payload.hex_id)

        candidates = self.robber_victims(payload.hex_id, player.id)
        if len(candidates) == 1:
            self._steal(player, self.state.player(candidates[0]))
        elif candidates:
            self.state.awaiting_victim = True
            self.state.victim_candidates = candidates

    def _robber_can_move(self) -> bool:
        """False when there is no robber or no hex left to move one onto."""
        if not self.state.robbers:
            return False
        if all(hid in self.state.robbers for hid in self.board.hexes):
            self.events.event("robber_stuck", "Every hex holds a robber, the robber stays put",
                              level="warning")
            return False
        return True

    def robber_victims(self, hid: str, thief_id: int) -> List[int]:
        """Opponents with buildings on the hex who hold at least one card."""
        victims = []
        for vid in self.board.hexes[hid].vertex_ids:
            owner = self.board.vertices[vid].owner
            if owner is None or owner == thief_id or owner in victims:
                continue
            victim = self.state.player(owner)
            if victim.eliminated or victim.total_resources() == 0:
                continue
            if (self.state.friendly_robber
                    and victory_points(self.state, victim, include_hidden=False) <= FRIENDLY_ROBBER_LIMIT):
                continue
            victims.append(owner)
        return victims

    def _handle_steal_resource(self, actor: int, payload: Optional[ActionPayload]):
        self._require_phase(Phase.PLAY)
        player = self._require_turn(actor)
        self._require_payload(payload, StealResourcePayload, Action.STEAL_RESOURCE)
        if not self.state.awaiting_victim:
            raise IllegalActionError("There is nobody to steal from")
        if payload.victim_id not in self.state.victim_candidates:
            raise IllegalActionError(f"Player {payload.victim_id} cannot be robbed")
        self._steal(player, self.state.player(payload.victim_id))

    def _steal(self, thief: Player, victim: Player):
        pool = [r for r in RESOURCE_TYPES for _ in range(victim.resources[r])]
        self.state.awaiting_victim = False
        self.state.victim_candidates = []
        if not pool:
            return
        resource = self.rng.choice(pool)
        victim.resources[resource] -= 1
        thief.resources[resource] += 1
        thief.stats.resources_stolen += 1
        self.events.event("resource_stolen", f"{thief.name} stole from {victim.name}",
                          player_id=thief.id, victim_id=victim.id)

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def _handle_build_road(self, actor: int, payload: Optional[ActionPayload]):
        self._require_phase(Phase.PLAY)
        player = self._require_turn(actor)
        self._require_payload(payload, BuildRoadPayload, Action.BUILD_ROAD)
        using_free_road = self.state.free_roads > 0
        if not using_free_road and not self.state.has_rolled:
            raise IllegalActionError("Roll the dice first")
        if self.state.robber_pending:
            raise IllegalActionError("Resolve the robber first")
        if not rules.can_place_road(self.board, payload.edge_id, player.id, Phase.PLAY, self.state.mode):
            raise IllegalActionError(f"Cannot build a road at {payload.edge_id}")

        if using_free_road:
            self.state.free_roads -= 1
        else:
            economy.pay(self.state, player, economy.ROAD_COST, "a road")

        self.board.edges[payload.edge_id].owner = player.id
        player.roads.append(payload.edge_id)
        player.stats.roads_built += 1
        self.events.event("road_built", f"{player.name} built a road",
                          player_id=player.id, edge_id=payload.edge_id, free=using_free_road)
        update_longest_road(self.state, self.board)

    def _handle_build_settlement(self, actor: int, payload: Optional[ActionPayload]):
        player = self._require_main_step(actor)
        self._require_payload(payload, BuildSettlementPayload, Action.BUILD_SETTLEMENT)
        if not rules.can_place_settlement(self.board, payload.vertex_id, player.id, Phase.PLAY, self.state.mode):
            raise IllegalActionError(f"Cannot build a settlement at {payload.vertex_id}")
        economy.pay(self.state, player, economy.SETTLEMENT_COST, "a settlement")

        self.board.vertices[payload.vertex_id].owner = player.id
        player.settlements.append(payload.vertex_id)
        player.stats.settlements_built += 1
        self.events.event("settlement_built", f"{player.name} built a settlement",
                          player_id=player.id, vertex_id=payload.vertex_id)
        # A new settlement can cut an opponent's road
        update_longest_road(self.state, self.board)

    def _handle_build_city(self, actor: int, payload: Optional[ActionPayload]):
        player = self._require_main_step(actor)
        self._require_payload(payload, BuildCityPayload, Action.BUILD_CITY)
        if not rules.can_place_city(self.board, payload.vertex_id, player.id):
            raise IllegalActionError(f"Cannot build a city at {payload.vertex_id}")
        economy.pay(self.state, player, economy.CITY_COST, "a city")

        self.board.vertices[payload.vertex_id].is_city = True
        player.settlements.remove(payload.vertex_id)
        player.cities.append(payload.vertex_id)
        player.stats.cities_built += 1
        self.events.event("city_built", f"{player.name} built a city",
                          player_id=player.id, vertex_id=payload.vertex_id)

    # ------------------------------------------------------------------
    # Development cards
    # ------------------------------------------------------------------

    def _handle_buy_dev_card(self, actor: int, payload: Optional[ActionPayload]):
        player = self._require_main_step(actor)
        card = economy.buy_dev_card(self.state, player)
        self.events.event("dev_card_bought", f"{player.name} bought a development card",
                          player_id=player.id, card_type=card.card_type.value)

    def _handle_play_dev_card(self, actor: int, payload: Optional[ActionPayload]):
        self._require_phase(Phase.PLAY)
        player = self._require_turn(actor)
        self._require_payload(payload, PlayDevCardPayload, Action.PLAY_DEV_CARD)
        if self.state.robber_pending:
            raise IllegalActionError("Resolve the robber first")
        card_type = payload.card_type
        if card_type == DevCardType.VICTORY_POINT:
            raise IllegalActionError("Victory point cards count automatically and are never played")
        if self.state.dev_card_played:
            raise IllegalActionError("Only one development card can be played per turn")
        if not any(c.card_type == card_type for c in player.dev_cards):
            raise IllegalActionError(f"Player does not have a {card_type.value} card")
        card = economy.find_playable_card(self.state, player, card_type)
        if card is None:
            raise IllegalActionError("Cannot play a development card the turn it was bought")

        if card_type == DevCardType.YEAR_OF_PLENTY:
            picks = payload.year_of_plenty_resources
            if not picks or len(picks) != 2:
                raise IllegalActionError("year_of_plenty requires two resource choices")
        if card_type == DevCardType.MONOPOLY and payload.monopoly_resource is None:
            raise IllegalActionError("monopoly requires a resource choice")

        player.dev_cards.remove(card)
        player.stats.dev_cards_played += 1
        self.state.dev_card_played = True

        if card_type == DevCardType.KNIGHT:
            player.knights_played += 1
            update_largest_army(self.state)
            self.state.awaiting_robber = self._robber_can_move()
        elif card_type == DevCardType.ROAD_BUILDING:
            self.state.free_roads = 2
        elif card_type == DevCardType.YEAR_OF_PLENTY:
            economy.year_of_plenty(self.state, player, list(payload.year_of_plenty_resources))
        elif card_type == DevCardType.MONOPOLY:
            collected = economy.monopoly(self.state, player, payload.monopoly_resource)
            logger.debug("monopoly_collected", player_id=player.id, amount=collected)

        self.events.event("dev_card_played", f"{player.name} played {card_type.value}",
                          player_id=player.id, card_type=card_type.value)

    # ------------------------------------------------------------------
    # Trading
    # ------------------------------------------------------------------

    def _handle_trade_bank(self, actor: int, payload: Optional[ActionPayload]):
        player = self._require_main_step(actor)
        self._require_payload(payload, TradeBankPayload, Action.TRADE_BANK)
        rate = economy.bank_trade(self.state, self.board, player, payload.give, payload.receive)
        self.events.event("bank_trade", f"{player.name} traded {rate} {payload.give.value} "
                          f"for 1 {payload.receive.value}", player_id=player.id, rate=rate)

    def _handle_propose_trade(self, actor: int, payload: Optional[ActionPayload]):
        player = self._require_main_step(actor)
        self._require_payload(payload, ProposeTradePayload, Action.PROPOSE_TRADE)
        try:
            target = self.state.player(payload.target_player_id)
        except ValueError as exc:
            raise IllegalActionError(str(exc)) from exc

        offer = economy.propose_trade(
            self.state, player, target, payload.give, payload.receive,
            now=self.scheduler.now, timeout=self.config.trade_timeout,
        )
        self.events.event("trade_proposed", f"{player.name} offered a trade to {target.name}",
                          player_id=player.id, target_id=target.id, offer_id=offer.offer_id)

        if target.id in self.agents and player.id in self.agents:
            self._schedule_trade_timers(offer, respond=False)
            # Scripted players answer each other inline
            self._scripted_trade_response(target.id, offer.offer_id)
        else:
            self._schedule_trade_timers(offer)

    def _schedule_trade_timers(self, offer: TradeOffer, respond: bool = True):
        """Queue the countdown of a pending offer and, for a scripted target, its answer."""
        still_pending = self._offer_guard(offer.offer_id)
        remaining = max(0.0, offer.expires_at - self.scheduler.now)
        self.scheduler.schedule(remaining, lambda: self._expire_trade(offer.offer_id),
                                label="trade_timeout", guard=still_pending)
        if respond and offer.target_id in self.agents:
            self.scheduler.schedule(
                min(self.config.ai_think_delay, remaining),
                lambda: self._scripted_trade_response(offer.target_id, offer.offer_id),
                label="trade_response",
                guard=still_pending,
            )

    def _offer_guard(self, offer_id: int) -> Callable[[], bool]:
        def still_pending() -> bool:
            offer = self.state.pending_trade
            return offer is not None and offer.offer_id == offer_id
        return still_pending

    def _scripted_trade_response(self, responder_id: int, offer_id: int):
        offer = self.state.pending_trade
        if offer is None or offer.offer_id != offer_id:
            return
        agent = self.agents[responder_id]
        accept = agent.respond_to_trade(self, offer)
        action = Action.ACCEPT_TRADE if accept else Action.DECLINE_TRADE
        if not self.step(action, player_id=responder_id) and accept:
            self.step(Action.DECLINE_TRADE, player_id=responder_id)

    def _expire_trade(self, offer_id: int):
        offer = self.state.pending_trade
        if economy.expire_trade(self.state, offer_id):
            self.events.event("trade_expired", "The trade offer expired", offer_id=offer_id)
            self._trade_resolved(offer)

    def _handle_accept_trade(self, actor: int, payload: Optional[ActionPayload]):
        self._require_phase(Phase.PLAY)
        offer = economy.accept_trade(self.state, actor)
        proposer = self.state.player(offer.proposer_id)
        target = self.state.player(offer.target_id)
        self.events.event("trade_accepted", f"{target.name} accepted {proposer.name}'s trade",
                          offer_id=offer.offer_id, proposer_id=proposer.id, target_id=target.id)
        self._trade_resolved(offer)

    def _handle_decline_trade(self, actor: int, payload: Optional[ActionPayload]):
        self._require_phase(Phase.PLAY)
        offer = economy.decline_trade(self.state, actor)
        self.events.event("trade_declined", f"Trade offer {offer.offer_id} was declined",
                          offer_id=offer.offer_id, player_id=actor)
        self._trade_resolved(offer)

    def _trade_resolved(self, offer: TradeOffer):
        """Let a scripted proposer that was waiting on a human continue its turn."""
        proposer_agent = self.agents.get(offer.proposer_id)
        if proposer_agent is None or offer.target_id in self.agents:
            return
        if self.state.current_player.id != offer.proposer_id:
            return
        self.scheduler.schedule(self.config.ai_think_delay, lambda: proposer_agent.take_turn(self),
                                label="ai_resume")

    # ------------------------------------------------------------------
    # Turn progression
    # ------------------------------------------------------------------

    def _handle_end_turn(self, actor: int, payload: Optional[ActionPayload]):
        self._require_phase(Phase.PLAY)
        player = self._require_turn(actor)
        if not self.state.has_rolled:
            raise IllegalActionError("Roll the dice before ending the turn")
        if self.state.robber_pending:
            raise IllegalActionError("Resolve the robber before ending the turn")

        if self.state.pending_trade is not None:
            self.events.event("trade_cancelled", "Pending trade cancelled at end of turn",
                              offer_id=self.state.pending_trade.offer_id)
            self.state.pending_trade = None

        self.events.event("turn_ended", f"{player.name} ended their turn", player_id=player.id)
        self._advance_turn()

    def _advance_turn(self):
        state = self.state
        count = len(state.players)
        index = state.current_player_index
        wrapped = False
        for offset in range(1, count + 1):
            if index + offset >= count:
                wrapped = True
            candidate = (index + offset) % count
            if not state.players[candidate].eliminated:
                break

        state.current_player_index = candidate
        state.has_rolled = False
        state.dice = None
        state.dev_card_played = False
        state.free_roads = 0
        state.turn_token += 1

        if wrapped:
            state.rotation += 1
            self._rotation_hooks()

        self._refresh_victory_points()
        self._check_eliminations()
        self._check_victory()

        if state.phase != Phase.PLAY:
            return
        if state.current_player.eliminated:
            self._advance_turn()
            return
        self._begin_turn()

    def _begin_turn(self):
        """Queue the scripted controller of the turn holder, if any."""
        agent = self.agents.get(self.state.current_player.id)
        if agent is None:
            return
        self.scheduler.schedule(self.config.ai_think_delay, lambda: agent.take_turn(self), label="ai_turn")

    def _rotation_hooks(self):
        state = self.state
        config = self.config
        if state.mode == GameMode.EXPANDING:
            if state.rotation % config.expand_every == 0 and self.board.radius < config.max_radius:
                self._apply_remap(self.board.expand())
                self.events.event("board_expanded", f"The board grew to radius {self.board.radius}",
                                  radius=self.board.radius)
        elif state.mode == GameMode.SHRINKING:
            due = state.rotation >= config.shrink_grace and (state.rotation - config.shrink_grace) % config.shrink_every == 0
            if not due:
                return
            if self.board.radius > MIN_RADIUS:
                events, robbers = self.board.shrink(state.robbers)
                state.robbers = robbers
                self.events.event("board_shrunk", f"The board shrank to radius {self.board.radius}",
                                  radius=self.board.radius, destroyed=len(events))
                update_longest_road(state, self.board)
            # A board configured at the minimum radius is judged on its first due rotation
            if self.board.radius <= MIN_RADIUS:
                self._check_eliminations()
                self._declare_survivors()

    def _apply_remap(self, remapped: Dict[str, str]):
        for player in self.state.players:
            for pieces in (player.settlements, player.cities, player.roads):
                pieces[:] = [remapped.get(pid, pid) for pid in pieces]

    def _on_destroyed(self, event: DestructionEvent):
        player = self.state.player(event.owner)
        for pieces in (player.settlements, player.cities, player.roads):
            if event.element_id in pieces:
                pieces.remove(event.element_id)
        self.destroyed.append(event)
        logger.info("structure_destroyed", kind=event.kind, element_id=event.element_id, owner=event.owner)

    # ------------------------------------------------------------------
    # Scoring, elimination and victory
    # ------------------------------------------------------------------

    def _refresh_victory_points(self):
        for player in self.state.players:
            player.victory_points = victory_points(self.state, player)

    def _turn_priority(self) -> List[Player]:
        count = len(self.state.players)
        start = self.state.current_player_index
        return [self.state.players[(start + i) % count] for i in range(count)]

    def _check_victory(self):
        state = self.state
        if state.phase != Phase.PLAY or state.mode == GameMode.SHRINKING:
            return
        for player in self._turn_priority():
            if not player.eliminated and player.victory_points >= state.win_target:
                self._finish([player.id], f"{player.name} wins with {player.victory_points} points")
                return

    def is_stranded(self, player: Player) -> bool:
        """No producing hex, no affordable build and no bank trade available."""
        producing = any(
            hx.resource is not None and hx.number is not None
            for hx in self.board.hexes_touching_owner(player.id)
        )
        if producing:
            return False
        if economy.can_bank_trade(self.state, self.board, player):
            return False
        phase = Phase.PLAY
        if player.has_resources(economy.ROAD_COST) and rules.legal_road_edges(self.board, player.id, phase, self.state.mode):
            return False
        if player.has_resources(economy.SETTLEMENT_COST) and rules.legal_settlement_vertices(self.board, player.id, phase, self.state.mode):
            return False
        if player.has_resources(economy.CITY_COST) and rules.legal_city_vertices(self.board, player.id):
            return False
        if player.has_resources(economy.DEV_CARD_COST) and self.state.deck:
            return False
        return True

    def _check_eliminations(self):
        state = self.state
        if state.phase != Phase.PLAY:
            return
        for player in state.players:
            if player.eliminated:
                continue
            if state.mode == GameMode.SHRINKING:
                out = player.structure_count() == 0
            else:
                out = self.is_stranded(player)
            if out:
                self.eliminate(player)

        active = state.active_players()
        if not active:
            self._finish([ENVIRONMENT_WINNER], "Every player was eliminated, the board wins")
        elif len(active) == 1 and len(state.players) > 1:
            self._finish([active[0].id], f"{active[0].name} is the last player standing")

    def eliminate(self, player: Player):
        """Remove a player: structures destroyed, cards returned to bank and deck."""
        player.eliminated = True
        self.board.clear_owner(player.id)
        economy.return_all_to_bank(self.state, player)
        for card in player.dev_cards:
            self.state.deck.insert(0, card.card_type)
        player.dev_cards = []
        self.state.pending_discards.pop(player.id, None)
        if self.state.pending_trade is not None and player.id in (
                self.state.pending_trade.proposer_id, self.state.pending_trade.target_id):
            self.state.pending_trade = None
        if self.state.largest_army_holder == player.id:
            self.state.largest_army_holder = None
            self.state.largest_army_size = LARGEST_ARMY_RECORD
            update_largest_army(self.state)
        update_longest_road(self.state, self.board)
        self._refresh_victory_points()
        self.events.event("player_eliminated", f"{player.name} was eliminated",
                          level="warning", player_id=player.id)

    def _declare_survivors(self):
        """At minimum radius, players holding a structure near the centre win together."""
        if self.state.phase != Phase.PLAY:
            return
        survivors = []
        for player in self._turn_priority():
            if player.eliminated:
                continue
            vertex_ids = list(player.settlements) + list(player.cities)
            for eid in player.roads:
                vertex_ids.extend(self.board.edges[eid].vertex_ids)
            if any(self.board.in_central_rings(vid, CENTRAL_RINGS) for vid in vertex_ids):
                survivors.append(player.id)

        if not survivors:
            self._finish([ENVIRONMENT_WINNER], "Nobody held the centre, the board wins")
        elif len(survivors) == 1:
            self._finish(survivors, f"{self.state.player(survivors[0]).name} survives alone")
        else:
            self._finish(survivors, f"{len(survivors)} survivors share the win")

    def _finish(self, winners: List[int], message: str):
        self.state.phase = Phase.GAME_OVER
        self.state.winners = winners
        self.state.pending_trade = None
        self.scheduler.clear()
        self.events.event("game_over", message, winners=winners)

    # ------------------------------------------------------------------
    # Replication
    # ------------------------------------------------------------------

    def replace(self, state: GameState, board: BoardGraph, clock: Optional[float] = None):
        """Swap in state and board received from a snapshot, dropping local deferred work.

        Deferred work implied by the new state (the turn holder's scripted
        move and the countdown of a pending trade) is queued again, relative
        to `clock` when the snapshot carried one.
        """
        self.board.destruction_listeners.remove(self._on_destroyed)
        self.state = state
        self.board = board
        self.board.destruction_listeners.append(self._on_destroyed)
        self.events.rebind(self.state.history)
        self.scheduler.clear()
        if clock is not None:
            self.scheduler.now = clock
        self._refresh_victory_points()
        if self.state.phase != Phase.GAME_OVER:
            if self.state.pending_trade is not None:
                self._schedule_trade_timers(self.state.pending_trade)
            self._begin_turn()
