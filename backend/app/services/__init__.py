"""
Services Layer

Two kinds of modules live here:
- pure generators and rules (group_schedule, standings, knockout_seeding,
  qualifier_selector, bracket_generator, score_rules) that work on snapshots
  and return intents (CreateMatch, BracketPlan, PointOutcome, SlotWrite)
- store services (fixture_service, scoring_service, advancement_service,
  player_service, tournament_service) that apply those intents through a session

Neither depends on HTTP request/response objects.
"""
