import logging

from rich.logging import RichHandler
from rich.pretty import pprint

from commandtree import *

logging.basicConfig(level=logging.DEBUG, format="%(message)s", handlers=[RichHandler()])

economy = CommandNode("economy", shell=True, colorful=True, fancy=True)


@economy.command("give|g")
def give(sender, label, args):
    print(f"{sender} gives {' '.join(args)}")
    return True


@economy.command("take|t")
def take(sender, label, args):
    print(f"{sender} takes {' '.join(args)}")
    return True


if __name__ == '__main__':
    pprint(economy)
    invoke(economy, "g Steve 100", sender="console")
    economy.add(take.handler, "take")  # rendered as a duplicate-command fault
