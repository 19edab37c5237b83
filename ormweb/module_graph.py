import os
import ast

from .logger import get_logger

_logger = get_logger(__name__)

class ModuleGraph:
    def __init__(self, addons_path):
        self.addons_path = addons_path
        self.modules = {} # name -> {depends, path, manifest}
        self.graph = {}   # name -> set(deps)

    def scan(self):
        """
        Scan addons directory for modules and manifests.
        """
        if not os.path.isdir(self.addons_path):
            return

        for item in sorted(os.listdir(self.addons_path)):
            if item.startswith('.') or item.startswith('_'):
                continue
            mod_path = os.path.join(self.addons_path, item)
            manifest_path = os.path.join(mod_path, '__manifest__.py')

            if os.path.isdir(mod_path) and os.path.exists(manifest_path):
                with open(manifest_path, 'r', encoding='utf-8') as f:
                    try:
                        manifest = ast.literal_eval(f.read())
                    except (ValueError, SyntaxError) as e:
                        _logger.error(f"Invalid manifest for {item}: {e}")
                        continue

                depends = manifest.get('depends', [])
                self.modules[item] = {
                    'depends': depends,
                    'path': mod_path,
                    'manifest': manifest,
                }
                self.graph[item] = set(depends)

    def topological_sort(self):
        """
        Returns list of module names in load order, a module comes after
        the modules it depends on.
        """
        result = []

        deps = {k: set(v) for k, v in self.graph.items()}

        # Dependencies outside of the addons path are assumed to be loaded
        all_modules = set(deps.keys())
        for m in all_modules:
            deps[m] = deps[m].intersection(all_modules)

        while deps:
            ready = [node for node, d in deps.items() if not d]

            if not ready:
                _logger.critical(f"Circular dependency detected in modules: {sorted(deps.keys())}")
                result.extend(sorted(deps.keys()))
                break

            # Sort alphabetically for deterministic behavior among siblings
            ready.sort()

            for node in ready:
                result.append(node)
                del deps[node]

            for d in deps.values():
                d.difference_update(ready)

        return result

    def get_module(self, name):
        return self.modules[name]

def load_modules_topological(addons_path):
    graph = ModuleGraph(addons_path)
    graph.scan()
    return graph.topological_sort()
