"""
info.py
=======

Veeamcred package information for use by setup.py and packaging utilities.

The package metadata lives in dunder assignments in the package's __init__.py. They are read from
the source rather than by importing the package, so that setup.py works before the package's
dependencies are installed.
"""

import ast
import os


# -----------------------------------------------------------------------------
# This should be the only line that has to change when reusing info.py for new
# modules/packages.
name = 'veeamcred'
# -----------------------------------------------------------------------------


# Locate the module/package
path = os.path.join(os.path.abspath(os.path.dirname(__file__)), name)
if os.path.isdir(path):
    import_path = os.path.join(path, '__init__.py')
else:
    path += '.py'
    import_path = path


def _read_metadata(source_path):
    with open(source_path, encoding='utf-8') as source_file:
        tree = ast.parse(source_file.read(), source_path)

    metadata = {'__doc__': ast.get_docstring(tree)}
    for node in tree.body:
        if not isinstance(node, ast.Assign) or len(node.targets) != 1:
            continue
        target = node.targets[0]
        if not isinstance(target, ast.Name):
            continue
        if not (target.id.startswith('__') and target.id.endswith('__')):
            continue
        if isinstance(node.value, ast.Name) and node.value.id in metadata:
            metadata[target.id] = metadata[node.value.id]
        else:
            metadata[target.id] = ast.literal_eval(node.value)
    return metadata


module = _read_metadata(import_path)


# Extract the info from the module/package
info = {
    'name': name,
    'version': module['__version__'],
    'author': module['__author__'],
    'author_email': module.get('__author_email__'),
    'description': module.get('__description__', name),
    'long_description': module.get('__long_description__') or module['__doc__'],
    'license': module.get('__license__'),
    'url': module.get('__url__'),
    'python_requires': module.get('__python_requires__'),
    'install_requires': module.get('__install_requires__', []),
    'extras_require': module.get('__extras_require__', {}),
    'packages': module.get('__packages__', [name]),
    'package_data': module.get('__package_data__', {}),
}
