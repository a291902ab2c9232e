from shadow_sync.cli import run

run()
