"""
Example: GLM for a virtual species
==================================
A species whose occurrence peaks at intermediate temperature and rises
with precipitation.  Presences are sampled from the true suitability
surface and contrasted with random background sites.

Expected output (approximate):
  - temperature enters with a quadratic term, precipitation linearly
  - the selected model is the lowest-AICc of ~13-60 candidate subsets
"""

import numpy as np
import pandas as pd

# If running from the repo root (not pip-installed), uncomment:
# import sys; sys.path.insert(0, '..')

from enmsdm import GLMSelector, PoolExecutor, train_glm

# ------------------------------------------------------------------
# 1.  Simulate a landscape and a virtual species
# ------------------------------------------------------------------
rng = np.random.RandomState(2024)
n_cells = 20000
landscape = pd.DataFrame({
    'temp': rng.uniform(0, 30, n_cells),        # deg C
    'precip': rng.uniform(200, 2000, n_cells),  # mm / yr
    'soil': rng.choice(['clay', 'loam', 'sand'], n_cells),
})

eta = (-1.0 - 0.03 * (landscape['temp'] - 18) ** 2
       + 0.0015 * (landscape['precip'] - 1100))
suitability = 1.0 / (1.0 + np.exp(-eta))

pres_idx = rng.choice(n_cells, 200, replace=False, p=suitability / suitability.sum())
bg_idx = rng.choice(n_cells, 2000, replace=False)

data = pd.concat([
    landscape.iloc[pres_idx].assign(presBg=1),
    landscape.iloc[bg_idx].assign(presBg=0),
], ignore_index=True)
data = data[['presBg', 'temp', 'precip', 'soil']]

print(f"Presences: {int(data['presBg'].sum())}, "
      f"background: {int((data['presBg'] == 0).sum())}")
print(f"Predictors: {list(data.columns[1:])}\n")

# ------------------------------------------------------------------
# 2.  One-liner: best model and tuning table
# ------------------------------------------------------------------
out = train_glm(data, resp='presBg', scale=True, out=['model', 'tuning'])
print(f"Best model: presBg ~ {out['model'].formula.rhs()}")
print("\nTop 10 models:")
print(out['tuning'].head(10).to_string(index=False))

# ------------------------------------------------------------------
# 3.  Estimator interface with a worker pool
# ------------------------------------------------------------------
X, y = data[['temp', 'precip', 'soil']], data['presBg']
with_pool = GLMSelector(scale=True, max_terms=6,
                        executor=PoolExecutor(2), verbose=True)
with_pool.fit(X, y)

# ------------------------------------------------------------------
# 4.  Predict in raw units (scale parameters are re-applied)
# ------------------------------------------------------------------
grid = pd.DataFrame({'temp': [5.0, 18.0, 28.0],
                     'precip': [1100.0] * 3,
                     'soil': ['loam'] * 3})
print("\nPredicted suitability at 5, 18 and 28 deg C:")
print(np.round(with_pool.predict(grid), 3))

# ------------------------------------------------------------------
# 5.  Diagnostic plots
# ------------------------------------------------------------------
fig = with_pool.plot_tuning(top=20)
fig.savefig('virtual_species_tuning.png', dpi=150, bbox_inches='tight')
fig = with_pool.plot_response('temp')
fig.savefig('virtual_species_temp.png', dpi=150, bbox_inches='tight')
print("\nPlots saved to virtual_species_tuning.png and virtual_species_temp.png")
