"""Starter .hardsnap.toml templates."""

DEFAULT_TOML = """\
# hardsnap configuration
version = "1.0"

[backup]
workers = 4               # parallel copy/link workers
# deadline_seconds = 3600 # cancel the run (nothing published) after this long

[ignore]
# patterns = ["*.tmp", "node_modules", "cache/*"]

[output]
format = "terminal"       # terminal | json | yaml
"""

FULL_TOML = """\
# hardsnap configuration
version = "1.0"

[backup]
workers = 4               # parallel copy/link workers
queue_size = 64           # entries in flight between the walker and the workers
chunk_size_kb = 1024      # copy buffer size
# deadline_seconds = 3600 # cancel the run (nothing published) after this long
sanitize_names = false    # rewrite names Windows filesystems reject (":", "?", ...)

[detect]
mode = "metadata"         # metadata | checksum (also compares file digests)
hash_algorithm = "sha256"

[ignore]
file = ".hardsnapignore"  # one glob per line, relative to the source root
# patterns = ["*.tmp", "node_modules", "cache/*"]

[manifest]
enabled = false           # record path -> size/mtime in the snapshot for faster reuse
name = ".hardsnap-manifest.json"

[output]
format = "terminal"       # terminal | json | yaml
show_summary = true
show_failures = true

[logging]
level = "warning"         # debug | info | warning | error
# file = "hardsnap.log"
"""
