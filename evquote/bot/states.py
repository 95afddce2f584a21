from aiogram.fsm.state import State, StatesGroup


class VehicleAdd(StatesGroup):
    waiting_model = State()
    waiting_name = State()
    waiting_price = State()
    waiting_battery = State()
    waiting_colors = State()
    waiting_motor = State()
    waiting_brake_tire = State()
