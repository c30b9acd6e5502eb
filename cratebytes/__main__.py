from cratebytes.runner import run

run()
