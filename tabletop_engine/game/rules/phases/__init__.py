# tabletop_engine/game/rules/phases/__init__.py
