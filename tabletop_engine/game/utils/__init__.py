# tabletop_engine/game/utils/__init__.py
