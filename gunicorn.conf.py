# LiveScorerX Gunicorn Configuration
#
# Match state lives in the database and every write is version-checked,
# so several workers may score the same match.

bind = "127.0.0.1:5000"
workers = 2
threads = 4
timeout = 120
