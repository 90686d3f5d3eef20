from enum import IntEnum


class ProfileState(IntEnum):
    WEIGHT = 0
    HEIGHT = 1
    AGE = 2
    GENDER = 3
    ACTIVITY = 4


class WaterState(IntEnum):
    AMOUNT = 5


class GoalState(IntEnum):
    TARGET = 6
