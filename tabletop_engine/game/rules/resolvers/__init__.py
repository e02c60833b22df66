# tabletop_engine/game/rules/resolvers/__init__.py
