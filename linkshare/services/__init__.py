# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single aggregate:
#
#   user_service     — registration and credential checks for User
#   post_service     — post creation, dashboard feed and title search
#   vote_service     — like / dislike toggles on a Post
#   comment_service  — capped, append-only comments on a Post
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary: write
# routes commit before responding, everything else relies on ``get_db``.
# Missing posts are reported by returning None; rule violations raise
# the exceptions defined next to each service.
