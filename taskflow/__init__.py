# TaskFlow: personal task/project manager backed by a hosted table service
#
# Components:
#   schema.py    - Data model (Task, Project, Priority) and row mapping
#   remote.py    - Table clients (Supabase REST, in-memory fallback)
#   auth.py      - Auth clients (Supabase GoTrue, in-memory fallback)
#   services.py  - Async data-access layer, default-project bootstrap
#   notify.py    - User-facing notification sink
#   store.py     - Per-session task/project store
#   views.py     - Dashboard filters and sidebar summaries
#   forms.py     - Form validation for the web surface
#   config.py    - YAML + environment configuration, logging setup
