from redlocker.cli import run

run()
