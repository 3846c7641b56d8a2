# =============================================================================
# BOMCALC ENGINE - PACKAGE
# =============================================================================
# Bill-of-Materials explosion and production-capacity calculation.
#
# Modules:
# - entities: Material, RecipeComponent, Recipe, Product
# - catalog: tenant-scoped in-memory repository loaded from YAML snapshots
# - config: engine settings
# - errors: error taxonomy
# - explosion: max producible quantity and bottleneck per recipe
# - batch: batch requirements, simulation, optimal batch size, forecast
# - aggregate: multi-product material aggregation
# - planner: production plans, optimizer and greedy schedule
# - validation_report: catalog data checks
# - tables: pandas views of engine results
# =============================================================================

__version__ = "0.1.0"
