from marshmallow import Schema, fields, ValidationError, post_load, validates_schema, RAISE
from marshmallow.validate import OneOf, Range, Length
from marshmallow_sqlalchemy import SQLAlchemyAutoSchema

from .models import GameRecord, JackpotPool, WalletTransaction
from .utils.slot_config import (
    BonusFeature, BonusReward, Jackpot, PaylineConfig, SlotGameConfig, SlotSymbol, TriggerCondition,
    FEATURE_TYPES, JACKPOT_TYPES, REWARD_TYPES, TRIGGER_TYPES, WIN_STYLES,
)
from .utils.blackjack_helper import BlackjackRules

CURRENCIES = ['GC', 'SC']


def _money(**kwargs):
    return fields.Decimal(as_string=True, **kwargs)


# --- Paytable configuration (load + dump) ---

class SlotSymbolSchema(Schema):
    id = fields.Str(required=True, validate=Length(min=1, max=20))
    name = fields.Str(required=True)
    value = _money(required=True, validate=Range(min=0))
    rarity = fields.Int(required=True, validate=Range(min=1, max=100))
    is_wild = fields.Bool(load_default=False)
    is_scatter = fields.Bool(load_default=False)
    is_bonus = fields.Bool(load_default=False)
    multiplier = _money(allow_none=True, load_default=None)

    @post_load
    def make_symbol(self, data, **kwargs):
        return SlotSymbol(**data)


class PaylineSchema(Schema):
    id = fields.Int(required=True, validate=Range(min=1))
    pattern = fields.List(fields.Int(validate=Range(min=0)), required=True)
    is_active = fields.Bool(load_default=True)

    @post_load
    def make_payline(self, data, **kwargs):
        data['pattern'] = tuple(data['pattern'])
        return PaylineConfig(**data)


class TriggerConditionSchema(Schema):
    type = fields.Str(required=True, validate=OneOf(TRIGGER_TYPES))
    symbols = fields.List(fields.Str(), load_default=list)
    count = fields.Int(allow_none=True, load_default=None, validate=Range(min=1))
    probability = fields.Float(allow_none=True, load_default=None, validate=Range(min=0, max=1))

    @post_load
    def make_trigger(self, data, **kwargs):
        data['symbols'] = tuple(data['symbols'])
        return TriggerCondition(**data)


class BonusRewardSchema(Schema):
    type = fields.Str(required=True, validate=OneOf(REWARD_TYPES))
    value = _money(required=True, validate=Range(min=0))
    duration = fields.Int(allow_none=True, load_default=None)
    applies_to = fields.Str(allow_none=True, load_default=None)

    @post_load
    def make_reward(self, data, **kwargs):
        return BonusReward(**data)


class BonusFeatureSchema(Schema):
    id = fields.Str(required=True)
    type = fields.Str(required=True, validate=OneOf(FEATURE_TYPES))
    name = fields.Str(required=True)
    description = fields.Str(load_default='')
    trigger_condition = fields.Nested(TriggerConditionSchema, required=True)
    rewards = fields.List(fields.Nested(BonusRewardSchema), load_default=list)
    is_active = fields.Bool(load_default=True)

    @post_load
    def make_feature(self, data, **kwargs):
        data['rewards'] = tuple(data['rewards'])
        return BonusFeature(**data)


class JackpotSchema(Schema):
    id = fields.Str(required=True)
    type = fields.Str(required=True, validate=OneOf(JACKPOT_TYPES))
    name = fields.Str(required=True)
    current_amount = _money(required=True, validate=Range(min=0))
    seed_amount = _money(required=True, validate=Range(min=0))
    contribution_rate = _money(load_default=0, validate=Range(min=0, max=1))
    trigger_condition = fields.Nested(TriggerConditionSchema, required=True)
    currency = fields.Str(required=True, validate=OneOf(CURRENCIES))

    @post_load
    def make_jackpot(self, data, **kwargs):
        return Jackpot(**data)


class SlotGameConfigSchema(Schema):
    class Meta:
        unknown = RAISE

    id = fields.Str(required=True, validate=Length(min=1, max=100))
    name = fields.Str(required=True)
    theme = fields.Str(load_default='custom')
    reels = fields.Int(required=True, validate=Range(min=1, max=10))
    rows = fields.Int(required=True, validate=Range(min=1, max=10))
    paylines = fields.List(fields.Nested(PaylineSchema), load_default=list)
    symbols = fields.List(fields.Nested(SlotSymbolSchema), required=True, validate=Length(min=1))
    rtp = fields.Float(required=True, validate=Range(min=50, max=100))
    volatility = fields.Str(load_default='medium', validate=OneOf(['low', 'medium', 'high']))
    min_bet = fields.Dict(keys=fields.Str(validate=OneOf(CURRENCIES)), values=_money(), required=True)
    max_bet = fields.Dict(keys=fields.Str(validate=OneOf(CURRENCIES)), values=_money(), required=True)
    max_win = _money(required=True)
    bonus_features = fields.List(fields.Nested(BonusFeatureSchema), load_default=list)
    jackpots = fields.List(fields.Nested(JackpotSchema), load_default=list)
    win_style = fields.Str(load_default='paylines', validate=OneOf(WIN_STYLES))
    auto_play_options = fields.List(fields.Int(validate=Range(min=1)), load_default=lambda: [10, 25, 50, 100])
    turbo_mode = fields.Bool(load_default=True)
    mobile_optimized = fields.Bool(load_default=True)

    @validates_schema
    def validate_geometry(self, data, **kwargs):
        if data.get('win_style', 'paylines') == 'paylines' and not data.get('paylines'):
            raise ValidationError('Payline games need at least one payline.', 'paylines')
        for payline in data.get('paylines', []):
            if len(payline.pattern) != data['reels']:
                raise ValidationError(f'Payline {payline.id} must cover every reel.', 'paylines')
            if any(row >= data['rows'] for row in payline.pattern):
                raise ValidationError(f'Payline {payline.id} references a row outside the grid.', 'paylines')
        if set(data['min_bet']) != set(data['max_bet']):
            raise ValidationError('min_bet and max_bet must list the same currencies.', 'min_bet')

    @post_load
    def make_config(self, data, **kwargs):
        for key in ('paylines', 'symbols', 'bonus_features', 'jackpots', 'auto_play_options'):
            data[key] = tuple(data[key])
        return SlotGameConfig(**data)


# --- Blackjack rules ---

class BlackjackRulesSchema(Schema):
    class Meta:
        unknown = RAISE

    dealer_stands_on_soft17 = fields.Bool(data_key='dealerStandsOnSoft17', load_default=True)
    blackjack_pays = _money(data_key='blackjackPays', load_default=None, allow_none=True,
                            validate=Range(min=0, min_inclusive=False))
    double_after_split = fields.Bool(data_key='doubleAfterSplit', load_default=True)
    resplit_aces = fields.Bool(data_key='resplitAces', load_default=False)
    surrender_allowed = fields.Bool(data_key='surrenderAllowed', load_default=True)
    insurance_allowed = fields.Bool(data_key='insuranceAllowed', load_default=True)
    max_split_hands = fields.Int(data_key='maxSplitHands', load_default=4, validate=Range(min=1, max=8))
    double_on_any_two = fields.Bool(data_key='doubleOnAnyTwo', load_default=True)

    @post_load
    def make_rules(self, data, **kwargs):
        if data.get('blackjack_pays') is None:
            data.pop('blackjack_pays', None)
        return BlackjackRules(**data)


# --- Result / state dumps ---

class PlayingCardSchema(Schema):
    suit = fields.Str()
    rank = fields.Str()
    value = fields.Int()
    unicode = fields.Str()
    color = fields.Str()


class WinLineSchema(Schema):
    kind = fields.Str()
    payline_id = fields.Int(allow_none=True)
    symbol = fields.Str()
    symbols = fields.List(fields.Str())
    count = fields.Int()
    multiplier = fields.Int()
    payout = _money()
    positions = fields.List(fields.List(fields.Int()))
    is_wild = fields.Bool()


class JackpotWinSchema(Schema):
    id = fields.Str()
    name = fields.Str()
    type = fields.Str()
    amount = _money()
    currency = fields.Str()


class CascadeResultSchema(Schema):
    iteration = fields.Int()
    symbols_removed = fields.List(fields.List(fields.Int()))
    symbols_added = fields.List(fields.List(fields.Int()))
    reels = fields.List(fields.List(fields.Str()))
    wins = fields.List(fields.Nested(WinLineSchema))
    total_win = _money()


class SpinResultSchema(Schema):
    game_id = fields.Str()
    bet_amount = _money()
    reels = fields.List(fields.List(fields.Str()))
    final_reels = fields.List(fields.List(fields.Str()))
    wins = fields.List(fields.Nested(WinLineSchema))
    line_win = _money()
    bonus_triggered = fields.Str(allow_none=True)
    bonus_reward = _money()
    free_spins_awarded = fields.Int()
    multiplier = _money(allow_none=True)
    jackpot_win = fields.Nested(JackpotWinSchema, allow_none=True)
    cascades = fields.List(fields.Nested(CascadeResultSchema))
    is_complete_screen_win = fields.Bool()
    winning_symbols = fields.List(fields.List(fields.Int()))
    total_win = _money()


class BlackjackHandSchema(Schema):
    cards = fields.List(fields.Nested(PlayingCardSchema))
    bet = _money()
    value = fields.Int()
    soft_ace = fields.Bool()
    is_blackjack = fields.Bool()
    is_busted = fields.Bool()
    is_stood = fields.Bool()
    is_doubled = fields.Bool()
    is_surrendered = fields.Bool()
    is_split = fields.Bool()
    can_split = fields.Bool()
    can_double = fields.Bool()
    can_insure = fields.Bool()
    result = fields.Str()
    payout = _money()
    description = fields.Str()


class BlackjackGameStateSchema(Schema):
    game_id = fields.Str()
    user_id = fields.Str()
    currency = fields.Str()
    game_phase = fields.Str()
    current_hand_index = fields.Int()
    player_hands = fields.List(fields.Nested(BlackjackHandSchema))
    dealer_hand = fields.Method('dump_dealer_hand')
    rules = fields.Method('dump_rules')
    min_bet = _money()
    max_bet = _money()
    insurance = _money()
    insurance_payout = _money()
    surrender = fields.Bool()
    total_bet = _money()
    total_win = _money()
    shoe_remaining = fields.Method('dump_shoe_remaining')
    created_at = fields.DateTime()

    def dump_dealer_hand(self, state):
        hand = BlackjackHandSchema().dump(state.dealer_hand)
        if state.game_phase in ('dealer_play', 'finished') or not state.dealer_hand.cards:
            return hand
        # Hole card stays hidden while the player acts.
        up_card = state.dealer_hand.cards[0]
        hand['cards'] = [PlayingCardSchema().dump(up_card)]
        hand['value'] = up_card.value
        hand['soft_ace'] = up_card.rank == 'A'
        hand['is_blackjack'] = False
        return hand

    def dump_rules(self, state):
        return BlackjackRulesSchema().dump(state.rules)

    def dump_shoe_remaining(self, state):
        return state.shoe.remaining


class RouletteBetSchema(Schema):
    id = fields.Str()
    type = fields.Str(validate=OneOf(['straight', 'split', 'street', 'corner', 'line', 'column', 'dozen',
                                      'red', 'black', 'odd', 'even', 'low', 'high', 'zero']))
    numbers = fields.List(fields.Int())
    amount = _money()
    odds = fields.Int()
    payout = _money()
    description = fields.Str()


class RouletteResultSchema(Schema):
    number = fields.Int()
    color = fields.Str()
    winning_bets = fields.List(fields.Nested(RouletteBetSchema))
    total_win = _money()
    ball_path = fields.List(fields.Int())


class RouletteGameStateSchema(Schema):
    game_id = fields.Str()
    user_id = fields.Str()
    currency = fields.Str()
    wheel_type = fields.Str()
    game_phase = fields.Str()
    min_bet = _money()
    max_bet = _money()
    table_limit = _money()
    bets = fields.List(fields.Nested(RouletteBetSchema))
    result = fields.Nested(RouletteResultSchema, allow_none=True)
    created_at = fields.DateTime()


class BaccaratBetSchema(Schema):
    id = fields.Str()
    type = fields.Str()
    amount = _money()
    odds = fields.Int()
    payout = _money()
    commission = _money()
    result = fields.Str()


class BaccaratResultSchema(Schema):
    player_cards = fields.List(fields.Nested(PlayingCardSchema))
    banker_cards = fields.List(fields.Nested(PlayingCardSchema))
    player_value = fields.Int()
    banker_value = fields.Int()
    winner = fields.Str()
    natural_win = fields.Bool()
    total_win = _money()
    commission = _money()


class BaccaratGameStateSchema(Schema):
    game_id = fields.Str()
    user_id = fields.Str()
    currency = fields.Str()
    game_phase = fields.Str()
    min_bet = _money()
    max_bet = _money()
    commission = _money()
    bets = fields.List(fields.Nested(BaccaratBetSchema))
    result = fields.Nested(BaccaratResultSchema, allow_none=True)
    created_at = fields.DateTime()


class GameDecisionSchema(Schema):
    hand = fields.Int()
    situation = fields.Str()
    decision = fields.Str()
    amount = _money()
    optimal = fields.Bool()


class GameSessionSchema(Schema):
    session_id = fields.Str()
    user_id = fields.Str()
    game_id = fields.Str()
    game_type = fields.Str()
    currency = fields.Str()
    start_time = fields.DateTime()
    end_time = fields.DateTime(allow_none=True)
    rounds_played = fields.Int()
    total_bet = _money()
    total_win = _money()
    net_result = _money()
    biggest_win = _money()
    winning_rounds = fields.Int()
    losing_rounds = fields.Int()
    current_streak = fields.Int()
    longest_win_streak = fields.Int()
    longest_lose_streak = fields.Int()
    average_bet = _money()
    rtp = _money()
    house_edge = _money()
    bonus_rounds = fields.Int()
    free_spins_triggered = fields.Int()
    features_triggered = fields.List(fields.Str())
    decisions = fields.List(fields.Nested(GameDecisionSchema))
    session_duration = fields.Float(allow_none=True)


# --- Persistence rows ---

class JackpotPoolSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = JackpotPool
        load_instance = False

    current_amount = _money()
    seed_amount = _money()
    contribution_rate = _money()
    last_won_amount = _money(allow_none=True)


class WalletTransactionSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = WalletTransaction
        load_instance = False

    amount = _money()
    balance_after = _money()


class GameRecordSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = GameRecord
        load_instance = False
