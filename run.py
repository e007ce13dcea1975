# Entry point, starts the bot
from brobot.main import run_bot

if __name__ == '__main__':
    run_bot()
