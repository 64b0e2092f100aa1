import argparse  #parsing the command line into subcommands
import logging
import os
import sys #stdout.buffer for raw object bytes

from . import base #. means same folder
from . import data
from .errors import MinigitError

logger = logging.getLogger(__name__)

def main(argv=None):
    args = parse_args(argv) #whatever is written in terminal is passed to args
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )
    try:
        args.func(args) #the function attached to the subcommand
    except (MinigitError, OSError) as e:
        logger.debug('%s failed', args.command, exc_info=True)
        print(f'fatal: {e}', file=sys.stderr)
        return 1
    return 0

def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog='minigit')
    parser.add_argument('-v', '--verbose', action='store_true', help='log debug output to stderr')
    commands = parser.add_subparsers(dest='command') #subcommand name lands in args.command
    commands.required = True #a subcommand is necessary

    init_parser = commands.add_parser('init')
    init_parser.set_defaults(func=init) # If "init" is used, attach the init() function

    hash_object_parser = commands.add_parser('hash-object')
    hash_object_parser.set_defaults(func=hash_object)
    hash_object_parser.add_argument('file')
    hash_object_parser.add_argument(
        '-t', '--type',
        default='blob',
        choices=data.TYPES,
        help='Object type (default: blob)',
    )
    hash_object_parser.add_argument(
        '-w', '--write',
        action='store_true',
        help='Write the object into the object database',
    )

    cat_file_parser = commands.add_parser('cat-file')
    cat_file_parser.set_defaults(func=cat_file)
    show = cat_file_parser.add_mutually_exclusive_group(required=True)
    show.add_argument('-p', dest='show', action='store_const', const='pretty', help='pretty-print the content')
    show.add_argument('-t', dest='show', action='store_const', const='type', help='show the object type')
    show.add_argument('-s', dest='show', action='store_const', const='size', help='show the payload size')
    cat_file_parser.add_argument('object')

    ls_tree_parser = commands.add_parser('ls-tree')
    ls_tree_parser.set_defaults(func=ls_tree)
    ls_tree_parser.add_argument('--name-only', action='store_true')
    ls_tree_parser.add_argument('tree')

    write_tree_parser = commands.add_parser('write-tree')
    write_tree_parser.set_defaults(func=write_tree)
    write_tree_parser.add_argument(
        'directory',
        nargs='?', #number of arguments
        default='.', #use current directory
        help='Root directory to write tree from (default: current directory)',
    )

    commit_tree_parser = commands.add_parser('commit-tree')
    commit_tree_parser.set_defaults(func=commit_tree)
    commit_tree_parser.add_argument('tree')
    commit_tree_parser.add_argument('-p', '--parent')
    commit_tree_parser.add_argument('-m', '--message', required=True)

    return parser.parse_args(argv)


def init(args):
    base.init()
    print (f'Initialized empty minigit repository in {os.path.join(os.getcwd(), data.GIT_DIR)}')

def hash_object(args):
    with open (args.file, 'rb') as f:
        print (data.hash_object(f.read(), type_=args.type, write=args.write))

def _format_entry(entry):
    type_ = 'tree' if entry.mode == base.DIR_MODE else 'blob'
    return f'{entry.mode:0>6} {type_} {entry.oid}\t{entry.name}'

def cat_file(args):
    type_ = data.get_object_type(args.object)
    if args.show == 'type':
        print (type_)
    elif args.show == 'size':
        print (data.get_object_size(args.object))
    elif type_ == 'tree':
        for entry in base.list_tree_entries(args.object):
            print (_format_entry(entry))
    else:
        sys.stdout.flush ()
        sys.stdout.buffer.write (data.get_object(args.object, expected=type_)) #raw payload to the terminal
        sys.stdout.buffer.flush ()

def ls_tree(args):
    for entry in base.list_tree_entries(args.tree):
        print (entry.name if args.name_only else _format_entry(entry))

def write_tree(args):
    oid = base.write_tree(args.directory)
    if oid is None:
        raise MinigitError(f'nothing to write: {args.directory} has no files')
    print (oid)

def commit_tree(args):
    print (base.commit(args.tree, args.parent, args.message))
