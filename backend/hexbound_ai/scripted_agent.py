#!/usr/bin/env python3
"""
Heuristic scripted player for HexBound.

A bounded greedy loop, not a search. Each turn:
1. Roll (playing a knight first if a robber sits on our land)
2. Resolve the robber if we rolled a 7
3. Play an advantageous development card
4. Repeat in fixed priority: peer trade, bank trade, city, settlement,
   road, development card, panic trade
5. End turn
"""
import random
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from hexbound import (
    RESOURCE_TYPES,
    Action,
    BuildCityPayload,
    BuildRoadPayload,
    BuildSettlementPayload,
    DevCardType,
    Difficulty,
    Game,
    GameMode,
    MoveRobberPayload,
    Phase,
    PlayDevCardPayload,
    Player,
    ProposeTradePayload,
    ResourceType,
    StealResourcePayload,
    TradeBankPayload,
    TradeOffer,
    victory_points,
)
from hexbound import economy, rules
from hexbound.logging_config import get_logger
from hexbound.roads import longest_path
from .base_agent import BaseAgent

logger = get_logger(__name__)

MAX_ACTIONS_PER_TURN = 25

PORT_BONUS = 1.5  # During play a port makes trades cheaper
PORT_PENALTY = 1.0  # During placement a coastal port spot usually produces less
EDGE_BIAS = 2.0  # Expanding boards reward sitting on the growing rim
CENTER_BIAS = 3.0  # Shrinking boards reward the centre
RIM_PENALTY = 8.0  # ...and punish the ring about to disappear


@dataclass(frozen=True)
class DifficultyProfile:
    random_site_chance: float  # Chance of picking a random legal site instead of the best
    trade_attempts: int  # Peer trade proposals per turn
    trade_willingness: float  # Chance of trying to trade at all when short
    residual_accept: float  # Chance of accepting an unfavourable offer


DIFFICULTY_PROFILES = {
    Difficulty.EASY: DifficultyProfile(0.35, 1, 0.5, 0.15),
    Difficulty.NORMAL: DifficultyProfile(0.1, 2, 0.8, 0.05),
    Difficulty.HARD: DifficultyProfile(0.0, 3, 1.0, 0.0),
}


def pip_weight(number: Optional[int]) -> int:
    """Dice-probability weight of a number token: 6 - |7 - n|."""
    if number is None:
        return 0
    return 6 - abs(7 - number)


class ScriptedAgent(BaseAgent):
    """
    Greedy scripted player.

    Decision priority after the roll:
    1. Peer trade for a missing build resource (bounded attempts)
    2. Bank trade for a missing build resource
    3. Build city
    4. Build settlement
    5. Build road (held back while saving for a settlement unless
       longest road is contested)
    6. Buy a development card
    7. Panic trade surplus when holding more than the discard threshold
    """

    def __init__(self, player_id: int, difficulty: Difficulty = Difficulty.NORMAL,
                 rng: Optional[random.Random] = None):
        super().__init__(player_id)
        self.difficulty = difficulty
        self.profile = DIFFICULTY_PROFILES[difficulty]
        self.rng = rng or random.Random()
        self._turn_token: Optional[int] = None
        self._trades_proposed = 0

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def vertex_score(self, game: Game, vertex_id: str) -> float:
        board = game.board
        vertex = board.vertices[vertex_id]
        score = float(sum(pip_weight(hx.number) for hx in board.hexes_of_vertex(vertex_id) if hx.resource))

        if vertex.port is not None:
            if game.state.phase == Phase.INITIAL_PLACEMENT:
                score -= PORT_PENALTY
            else:
                score += PORT_BONUS

        ring = board.vertex_ring(vertex_id)
        if game.state.mode == GameMode.EXPANDING and board.radius:
            score += EDGE_BIAS * ring / board.radius
        elif game.state.mode == GameMode.SHRINKING:
            score += CENTER_BIAS * (board.radius - ring)
            if ring >= board.radius:
                score -= RIM_PENALTY
        return score

    def _settlement_prospect(self, game: Game, vertex_id: str) -> float:
        """Value of a vertex as a future site (0 if the distance rule forbids it)."""
        vertex = game.board.vertices[vertex_id]
        if vertex.owner is not None:
            return 0.0
        if any(n.owner is not None for n in game.board.neighbors_of_vertex(vertex_id)):
            return 0.0
        return self.vertex_score(game, vertex_id)

    def edge_score(self, game: Game, edge_id: str) -> float:
        edge = game.board.edges[edge_id]
        return max(self._settlement_prospect(game, vid) for vid in edge.vertex_ids)

    def _choose(self, candidates: List[str], scorer: Callable[[str], float]) -> Optional[str]:
        """Best-scoring candidate, or a random one depending on difficulty."""
        if not candidates:
            return None
        if self.rng.random() < self.profile.random_site_chance:
            return self.rng.choice(sorted(candidates))
        return max(sorted(candidates), key=scorer)

    # ------------------------------------------------------------------
    # Turn loop
    # ------------------------------------------------------------------

    def take_turn(self, game: Game) -> None:
        """Play or resume this player's turn."""
        state = game.state
        if state.phase == Phase.GAME_OVER or state.current_player.id != self.player_id:
            return

        if state.turn_token != self._turn_token:
            self._turn_token = state.turn_token
            self._trades_proposed = 0

        if state.phase == Phase.INITIAL_PLACEMENT:
            self._place_initial(game)
            return

        if not state.has_rolled:
            if self._robber_on_own_land(game):
                self._play_card(game, DevCardType.KNIGHT)
                if not self._resolve_robber(game):
                    return
            game.step(Action.ROLL_DICE, player_id=self.player_id)

        if not self._resolve_robber(game):
            return  # Waiting on other players' discards

        if not game.state.dev_card_played:
            self._play_dev_card(game)
            if not self._resolve_robber(game):
                return

        for _ in range(MAX_ACTIONS_PER_TURN):
            if game.state.phase != Phase.PLAY or game.state.current_player.id != self.player_id:
                return
            offer = game.state.pending_trade
            if offer is not None and offer.proposer_id == self.player_id:
                return  # Waiting on a human answer; the game resumes us
            if not self._act_once(game):
                break

        if game.state.phase == Phase.PLAY and game.state.current_player.id == self.player_id:
            game.step(Action.END_TURN, player_id=self.player_id)

    def _act_once(self, game: Game) -> bool:
        """Try each option in priority order; True if something was done."""
        player = self.get_player(game)
        goal = self._goal(game, player)
        return (
            self._try_peer_trade(game, player, goal)
            or self._try_bank_trade(game, player, goal)
            or self._try_build_city(game, player)
            or self._try_build_settlement(game, player)
            or self._try_build_road(game, player)
            or self._try_buy_dev_card(game, player)
            or self._try_panic_trade(game, player)
        )

    # ------------------------------------------------------------------
    # Initial placement
    # ------------------------------------------------------------------

    def _place_initial(self, game: Game):
        state = game.state
        phase = Phase.INITIAL_PLACEMENT
        if state.placement_settlement is None:
            sites = rules.legal_settlement_vertices(game.board, self.player_id, phase, state.mode)
            site = self._choose(sites, lambda vid: self.vertex_score(game, vid))
            if site is None:
                logger.error("no_initial_site", player_id=self.player_id)
                return
            game.step(Action.SETUP_PLACE_SETTLEMENT, BuildSettlementPayload(site), player_id=self.player_id)

        anchor = game.state.placement_settlement
        if anchor is None:
            return
        edges = [
            e.id for e in game.board.edges_of_vertex(anchor)
            if rules.can_place_road(game.board, e.id, self.player_id, phase, state.mode)
        ]
        road = self._choose(edges, lambda eid: self.edge_score(game, eid))
        if road is not None:
            game.step(Action.SETUP_PLACE_ROAD, BuildRoadPayload(road), player_id=self.player_id)

    # ------------------------------------------------------------------
    # Goals and trading
    # ------------------------------------------------------------------

    def _goal(self, game: Game, player: Player) -> Dict[ResourceType, int]:
        """Cost of the most valuable thing we could build next."""
        board = game.board
        if rules.legal_city_vertices(board, player.id):
            return economy.CITY_COST
        if rules.legal_settlement_vertices(board, player.id, Phase.PLAY, game.state.mode):
            return economy.SETTLEMENT_COST
        if rules.legal_road_edges(board, player.id, Phase.PLAY, game.state.mode):
            return economy.ROAD_COST
        return economy.DEV_CARD_COST

    @staticmethod
    def _missing(player: Player, cost: Dict[ResourceType, int]) -> Dict[ResourceType, int]:
        return {r: n - player.resources[r] for r, n in cost.items() if player.resources[r] < n}

    @staticmethod
    def _surplus(player: Player, cost: Dict[ResourceType, int]) -> Dict[ResourceType, int]:
        return {
            r: player.resources[r] - cost.get(r, 0)
            for r in RESOURCE_TYPES
            if player.resources[r] > cost.get(r, 0)
        }

    def _try_peer_trade(self, game: Game, player: Player, goal: Dict[ResourceType, int]) -> bool:
        if self._trades_proposed >= self.profile.trade_attempts:
            return False
        missing = self._missing(player, goal)
        surplus = self._surplus(player, goal)
        if not missing or not surplus:
            return False
        if self.rng.random() > self.profile.trade_willingness:
            self._trades_proposed += 1
            return False

        wanted = max(sorted(missing, key=lambda r: r.value), key=lambda r: missing[r])
        offered = max(sorted(surplus, key=lambda r: r.value), key=lambda r: surplus[r])
        partners = [
            p for p in game.state.active_players()
            if p.id != player.id and p.resources[wanted] > 0
        ]
        if not partners:
            return False
        partner = max(partners, key=lambda p: (p.resources[wanted], -p.id))

        self._trades_proposed += 1
        payload = ProposeTradePayload(
            target_player_id=partner.id,
            give={offered: 1},
            receive={wanted: 1},
        )
        return game.step(Action.PROPOSE_TRADE, payload, player_id=player.id)

    def _try_bank_trade(self, game: Game, player: Player, goal: Dict[ResourceType, int]) -> bool:
        missing = self._missing(player, goal)
        if not missing:
            return False
        for give in sorted(RESOURCE_TYPES, key=lambda r: -player.resources[r]):
            if give in missing:
                continue
            rate = economy.trade_rate(game.board, player.id, give)
            if player.resources[give] - goal.get(give, 0) < rate:
                continue
            for receive in missing:
                if game.state.bank[receive] > 0:
                    return game.step(Action.TRADE_BANK, TradeBankPayload(give, receive), player_id=player.id)
        return False

    def _try_panic_trade(self, game: Game, player: Player) -> bool:
        """Shed cards through the bank while above the discard threshold."""
        if player.total_resources() <= game.config.discard_threshold:
            return False
        give = max(RESOURCE_TYPES, key=lambda r: (player.resources[r], r.value))
        if player.resources[give] < economy.trade_rate(game.board, player.id, give):
            return False
        options = [r for r in RESOURCE_TYPES if r != give and game.state.bank[r] > 0]
        if not options:
            return False
        receive = min(options, key=lambda r: (player.resources[r], r.value))
        return game.step(Action.TRADE_BANK, TradeBankPayload(give, receive), player_id=player.id)

    def respond_to_trade(self, game: Game, offer: TradeOffer) -> bool:
        """Accept when what we receive is worth more to us than what we give."""
        player = self.get_player(game)
        if not player.has_resources(offer.receive):
            return False
        goal = self._goal(game, player)
        missing = self._missing(player, goal)

        def value(bundle: Dict[ResourceType, int], giving: bool) -> float:
            total = 0.0
            for resource, amount in bundle.items():
                weight = 1.0
                if resource in missing:
                    weight = 2.0
                elif giving and resource in goal and player.resources[resource] - amount < goal[resource]:
                    weight = 2.0
                total += weight * amount
            return total

        received = value(offer.give, giving=False)
        given = value(offer.receive, giving=True)
        if received > given:
            return True
        return self.rng.random() < self.profile.residual_accept

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def _try_build_city(self, game: Game, player: Player) -> bool:
        if not player.has_resources(economy.CITY_COST):
            return False
        sites = rules.legal_city_vertices(game.board, player.id)
        if not sites:
            return False
        site = max(sorted(sites), key=lambda vid: self.vertex_score(game, vid))
        return game.step(Action.BUILD_CITY, BuildCityPayload(site), player_id=player.id)

    def _try_build_settlement(self, game: Game, player: Player) -> bool:
        if not player.has_resources(economy.SETTLEMENT_COST):
            return False
        sites = rules.legal_settlement_vertices(game.board, player.id, Phase.PLAY, game.state.mode)
        site = self._choose(sites, lambda vid: self.vertex_score(game, vid))
        if site is None:
            return False
        return game.step(Action.BUILD_SETTLEMENT, BuildSettlementPayload(site), player_id=player.id)

    def _road_contested(self, game: Game, player: Player) -> bool:
        """True when one more road could claim or defend longest road."""
        state = game.state
        mine = longest_path(game.board, player.id)
        holder = state.longest_road_holder
        if holder == player.id:
            return any(
                longest_path(game.board, p.id) >= state.longest_road_length - 1
                for p in state.active_players() if p.id != player.id
            )
        return mine + 1 > state.longest_road_length or (holder is not None and mine + 2 > state.longest_road_length)

    def _try_build_road(self, game: Game, player: Player) -> bool:
        state = game.state
        free = state.free_roads > 0
        if not free and not player.has_resources(economy.ROAD_COST):
            return False
        edges = rules.legal_road_edges(game.board, player.id, Phase.PLAY, state.mode)
        if not edges:
            return False
        if not free:
            saving = bool(rules.legal_settlement_vertices(game.board, player.id, Phase.PLAY, state.mode))
            if saving and not self._road_contested(game, player):
                return False
        edge = self._choose(edges, lambda eid: self.edge_score(game, eid))
        return game.step(Action.BUILD_ROAD, BuildRoadPayload(edge), player_id=player.id)

    def _try_buy_dev_card(self, game: Game, player: Player) -> bool:
        if not game.state.deck or not player.has_resources(economy.DEV_CARD_COST):
            return False
        return game.step(Action.BUY_DEV_CARD, player_id=player.id)

    # ------------------------------------------------------------------
    # Development cards
    # ------------------------------------------------------------------

    def _can_play(self, game: Game, card_type: DevCardType) -> bool:
        player = self.get_player(game)
        return (
            not game.state.dev_card_played
            and economy.find_playable_card(game.state, player, card_type) is not None
        )

    def _play_card(self, game: Game, card_type: DevCardType, **choices) -> bool:
        if not self._can_play(game, card_type):
            return False
        return game.step(Action.PLAY_DEV_CARD, PlayDevCardPayload(card_type, **choices), player_id=self.player_id)

    def _play_dev_card(self, game: Game) -> bool:
        """Play the most useful card in hand, if any."""
        player = self.get_player(game)
        state = game.state

        if self._can_play(game, DevCardType.KNIGHT):
            army_in_reach = player.knights_played + 1 > state.largest_army_size
            if self._robber_on_own_land(game) or (army_in_reach and state.largest_army_holder != player.id):
                return self._play_card(game, DevCardType.KNIGHT)

        if self._can_play(game, DevCardType.ROAD_BUILDING):
            if len(rules.legal_road_edges(game.board, player.id, Phase.PLAY, state.mode)) >= 2:
                return self._play_card(game, DevCardType.ROAD_BUILDING)

        if self._can_play(game, DevCardType.YEAR_OF_PLENTY):
            missing = self._missing(player, self._goal(game, player))
            picks: List[ResourceType] = []
            for resource, amount in sorted(missing.items(), key=lambda item: -item[1]):
                picks.extend([resource] * amount)
            if picks:
                picks = (picks + picks)[:2]
                return self._play_card(game, DevCardType.YEAR_OF_PLENTY, year_of_plenty_resources=tuple(picks))

        if self._can_play(game, DevCardType.MONOPOLY):
            held = {
                r: sum(p.resources[r] for p in state.players if p.id != player.id)
                for r in RESOURCE_TYPES
            }
            best = max(RESOURCE_TYPES, key=lambda r: (held[r], r.value))
            if held[best] >= 3:
                return self._play_card(game, DevCardType.MONOPOLY, monopoly_resource=best)
        return False

    # ------------------------------------------------------------------
    # Robber
    # ------------------------------------------------------------------

    def _robber_on_own_land(self, game: Game) -> bool:
        own = {v.id for v in game.board.vertices_owned_by(self.player_id)}
        return any(
            own.intersection(game.board.hexes[hid].vertex_ids)
            for hid in game.state.robbers
            if hid in game.board.hexes
        )

    def choose_robber_target(self, game: Game) -> Optional[Tuple[str, int]]:
        """Hex hurting the leading opponent without touching our own buildings, and which robber to move.

        None when every hex already holds a robber.
        """
        state = game.state
        board = game.board
        opponents = [p for p in state.active_players() if p.id != self.player_id]
        leader = max(opponents, key=lambda p: (victory_points(state, p, include_hidden=False), -p.id), default=None)

        best_hex = None
        best_score = -1.0
        for hid in sorted(board.hexes):
            if hid in state.robbers:
                continue
            hx = board.hexes[hid]
            owners = [board.vertices[vid] for vid in hx.vertex_ids if board.vertices[vid].owner is not None]
            if any(v.owner == self.player_id for v in owners):
                continue
            score = 0.0
            for vertex in owners:
                weight = 2.0 if vertex.is_city else 1.0
                if leader is not None and vertex.owner == leader.id:
                    weight *= 3.0
                score += weight * pip_weight(hx.number)
            if score > best_score:
                best_hex, best_score = hid, score

        if best_hex is None:
            free = sorted(h for h in board.hexes if h not in state.robbers)
            if not free:
                return None
            best_hex = free[0]

        # Move the robber that is hurting us, if any
        own = {v.id for v in board.vertices_owned_by(self.player_id)}
        index = 0
        for i, hid in enumerate(state.robbers):
            if hid in board.hexes and own.intersection(board.hexes[hid].vertex_ids):
                index = i
                break
        return best_hex, index

    def _resolve_robber(self, game: Game) -> bool:
        """Move the robber and pick a victim if needed. False while others still owe discards."""
        state = game.state
        if state.pending_discards:
            return False
        if state.awaiting_robber:
            target = self.choose_robber_target(game)
            if target is not None:
                hid, index = target
                game.step(Action.MOVE_ROBBER, MoveRobberPayload(hid, index), player_id=self.player_id)
        if game.state.awaiting_victim:
            victim = self.choose_victim(game, list(game.state.victim_candidates))
            game.step(Action.STEAL_RESOURCE, StealResourcePayload(victim), player_id=self.player_id)
        return not game.state.robber_pending

    def choose_victim(self, game: Game, candidates: List[int]) -> int:
        """The richest eligible opponent."""
        return max(candidates, key=lambda pid: (game.state.player(pid).total_resources(), -pid))

    def choose_discard(self, game: Game, player: Player, count: int) -> Dict[ResourceType, int]:
        """Discard from the largest stack first."""
        remaining = dict(player.resources)
        cards = {r: 0 for r in RESOURCE_TYPES}
        for _ in range(count):
            largest = max(RESOURCE_TYPES, key=lambda r: (remaining[r], r.value))
            remaining[largest] -= 1
            cards[largest] += 1
        return cards
