"""Game constants and utilities"""

SUITS = ['hearts', 'diamonds', 'clubs', 'spades']
RANKS = ['A', '2', '3', '4', '5', '6', '7', '8', '9', '10', 'J', 'Q', 'K']

RANK_VALUES = {
    'A': 1, '2': 2, '3': 3, '4': 4, '5': 5, '6': 6, '7': 7,
    '8': 8, '9': 9, '10': 10, 'J': 11, 'Q': 12, 'K': 13,
}

# Nines are worth nothing at scoring time
ZERO_SCORE_RANK = '9'

STANDARD_DECK_SIZE = 52
EXTRA_CARDS_PER_PLAYER = 26
BASE_DECK_PREFIX = 'deck1-'
EXTRA_DECK_PREFIX = 'extra'

# Round phases
PHASE_WAITING = 'waiting'
PHASE_PLAYING = 'playing'
PHASE_SCORING = 'scoring'
PHASE_FINISHED = 'finished'

# Turn phases
TURN_PLAY = 'play'
TURN_DRAW = 'draw'

# Draw sources
SOURCE_DECK = 'deck'
SOURCE_DISCARD = 'discard'

# Tie-break policies for call_win
TIE_BREAK_OPPONENT = 'opponent'
TIE_BREAK_CALLER = 'caller'

MIN_PLAYERS = 2
MAX_PLAYERS = 6
MIN_TOTAL_ROUNDS = 3
MAX_TOTAL_ROUNDS = 12
DEFAULT_TOTAL_ROUNDS = 5

ROOM_CODE_LENGTH = 6
ROOM_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
ROOM_CODE_RETRIES = 10

# Placeholder card shown in place of hidden cards
HIDDEN = 'hidden'
HIDDEN_VALUE = 0

ROOM_RETENTION_HOURS = 24

# Rate limited actions
ACTION_CREATE_ROOM = 'create_room'
ACTION_JOIN_ROOM = 'join_room'
