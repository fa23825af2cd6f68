"""
Visualization utilities - exploratory plots and model comparison charts
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from pathlib import Path
import logging
from typing import Dict, Any, Optional, List

logger = logging.getLogger(__name__)

if 'seaborn-v0_8-darkgrid' in plt.style.available:
    plt.style.use('seaborn-v0_8-darkgrid')

sns.set_theme(style="darkgrid", palette="husl")


class Visualizer:
    """Handle visualization of the census data and of model results"""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize Visualizer

        Args:
            config: Configuration dictionary
        """
        self.config = config
        self.output_dir = Path(config.get('output', {}).get('plots_dir', 'results/plots'))
        self.output_dir.mkdir(parents=True, exist_ok=True)

        data_config = config.get('data', {})
        self.label_column = data_config.get('label_column', 'income')
        self.positive_label = data_config.get('positive_label', '>50K')

        plt.rcParams['figure.dpi'] = 100
        plt.rcParams['savefig.dpi'] = 100
        plt.rcParams['savefig.bbox'] = 'tight'

    def _save(self, fig, filename: str, description: str) -> Path:
        filepath = self.output_dir / filename
        fig.savefig(filepath, dpi=100, bbox_inches='tight', facecolor='white', edgecolor='none')
        plt.close(fig)
        logger.info(f"{description} saved to {filepath}")
        return filepath

    def plot_label_balance(self, df: pd.DataFrame) -> Path:
        """
        Plot the income label distribution of the training data

        Args:
            df: Cleaned training frame
        """
        counts = df[self.label_column].astype(str).value_counts()

        fig, ax = plt.subplots(figsize=(6, 5), constrained_layout=True)
        bars = ax.bar(counts.index, counts.values, color=sns.color_palette("husl", len(counts)),
                      edgecolor='black', linewidth=0.5)

        total = counts.sum()
        for bar, value in zip(bars, counts.values):
            ax.text(bar.get_x() + bar.get_width() / 2., bar.get_height(),
                    f'{value} ({value / total:.1%})', ha='center', va='bottom', fontsize=10)

        ax.set_xlabel('Income', fontsize=12)
        ax.set_ylabel('Count', fontsize=12)
        ax.set_title('Income Label Balance', fontsize=14, fontweight='bold')

        return self._save(fig, 'label_balance.png', "Label balance plot")

    def plot_categorical_vs_income(self, df: pd.DataFrame, column: str) -> Path:
        """
        Plot the share of each income class within every level of a categorical column

        Args:
            df: Cleaned training frame
            column: Categorical column name
        """
        values = df[column].astype(object).where(df[column].notna(), 'missing').astype(str)
        proportions = pd.crosstab(values, df[self.label_column].astype(str), normalize='index')
        counts = values.value_counts()
        proportions = proportions.loc[counts.index]

        height = max(4, 0.35 * len(proportions))
        fig, axes = plt.subplots(1, 2, figsize=(14, height), constrained_layout=True,
                                 gridspec_kw={'width_ratios': [2, 1]})

        proportions.plot(kind='barh', stacked=True, ax=axes[0], edgecolor='black', linewidth=0.3)
        axes[0].set_xlabel('Proportion', fontsize=11)
        axes[0].set_ylabel(column, fontsize=11)
        axes[0].set_title(f'Income by {column}', fontsize=13, fontweight='bold')
        axes[0].invert_yaxis()
        axes[0].legend(title='Income', loc='lower right')

        axes[1].barh(counts.index, counts.values, color='steelblue', alpha=0.8)
        axes[1].set_xlabel('Count', fontsize=11)
        axes[1].set_title('Level frequency', fontsize=13, fontweight='bold')
        axes[1].invert_yaxis()

        safe_name = column.replace('-', '_')
        return self._save(fig, f'categorical_{safe_name}.png', f"{column} plot")

    def plot_numeric_by_income(self, df: pd.DataFrame, columns: List[str]) -> Optional[Path]:
        """
        Box plots of the numeric columns split by income class

        Args:
            df: Cleaned training frame
            columns: Numeric column names
        """
        columns = [col for col in columns if col in df.columns]
        if not columns:
            logger.warning("No numeric columns to plot")
            return None

        n_cols = min(3, len(columns))
        n_rows = int(np.ceil(len(columns) / n_cols))
        fig, axes = plt.subplots(n_rows, n_cols, figsize=(5 * n_cols, 4 * n_rows),
                                 constrained_layout=True, squeeze=False)

        labels = df[self.label_column].astype(str)
        for ax, col in zip(axes.flat, columns):
            sns.boxplot(x=labels, y=df[col], ax=ax, hue=labels, legend=False)
            ax.set_xlabel('Income', fontsize=10)
            ax.set_title(col, fontsize=12, fontweight='bold')

        for ax in list(axes.flat)[len(columns):]:
            ax.set_visible(False)

        fig.suptitle('Numeric Features by Income', fontsize=14, fontweight='bold')
        return self._save(fig, 'numeric_by_income.png', "Numeric feature plot")

    def plot_missing_values(self, df: pd.DataFrame, dataset_name: str = 'train') -> Optional[Path]:
        """
        Bar chart of missing values per column

        Args:
            df: Cleaned frame
            dataset_name: Label used in the title and file name
        """
        missing = df.isnull().sum()
        missing = missing[missing > 0].sort_values(ascending=False)
        if missing.empty:
            logger.info(f"No missing values in {dataset_name} data")
            return None

        fig, ax = plt.subplots(figsize=(8, 5), constrained_layout=True)
        ax.bar(missing.index.astype(str), missing.values, color='indianred', edgecolor='black', linewidth=0.5)
        ax.set_ylabel('Missing values', fontsize=12)
        ax.set_title(f'Missing Values - {dataset_name}', fontsize=14, fontweight='bold')
        ax.tick_params(axis='x', rotation=45)

        return self._save(fig, f'missing_values_{dataset_name}.png', "Missing values plot")

    def run_eda(self, train_df: pd.DataFrame, test_df: Optional[pd.DataFrame],
                numeric_columns: List[str], categorical_columns: List[str]) -> List[Path]:
        """Create every exploratory plot of the cleaned data"""
        paths = [self.plot_label_balance(train_df),
                 self.plot_numeric_by_income(train_df, numeric_columns),
                 self.plot_missing_values(train_df, 'train')]
        if test_df is not None:
            paths.append(self.plot_missing_values(test_df, 'test'))
        for col in categorical_columns:
            paths.append(self.plot_categorical_vs_income(train_df, col))

        return [path for path in paths if path is not None]

    def plot_model_comparison(self, comparison_df: pd.DataFrame) -> Optional[Path]:
        """
        Plot mean cross-validated accuracy per model with standard error bars

        Args:
            comparison_df: DataFrame with model comparison
        """
        if comparison_df is None or comparison_df.empty or 'cv_accuracy' not in comparison_df.columns:
            logger.warning("No model comparison to plot")
            return None

        fig, ax = plt.subplots(figsize=(10, 6), constrained_layout=True)

        x = np.arange(len(comparison_df))
        errors = comparison_df['cv_std_error'].fillna(0).to_numpy()
        bars = ax.bar(x, comparison_df['cv_accuracy'], yerr=errors, capsize=6,
                      color=sns.color_palette("husl", len(comparison_df)), edgecolor='black', linewidth=0.5)

        for bar, value in zip(bars, comparison_df['cv_accuracy']):
            ax.text(bar.get_x() + bar.get_width() / 2., bar.get_height(),
                    f'{value:.4f}', ha='center', va='bottom', fontsize=9)

        lower = np.nanmin(comparison_df['cv_accuracy'] - errors)
        ax.set_ylim(max(0.0, lower - 0.05), 1.0)
        ax.set_xticks(x)
        ax.set_xticklabels(comparison_df['model'], rotation=30, ha='right')
        ax.set_xlabel('Model', fontsize=12)
        ax.set_ylabel('CV accuracy', fontsize=12)
        ax.set_title('Model Comparison - Accuracy', fontsize=14, fontweight='bold')
        ax.grid(True, alpha=0.3, linestyle='--')

        return self._save(fig, 'model_comparison_accuracy.png', "Model comparison plot")

    def plot_fold_scores(self, results: Dict[str, Dict[str, Any]]) -> Optional[Path]:
        """
        Distribution of per-fold accuracies of the selected candidate of each model

        Args:
            results: Dictionary of model results
        """
        rows = [{'model': name, 'accuracy': score}
                for name, model_results in results.items() if 'error' not in model_results
                for score in model_results.get('fold_scores', []) if not pd.isna(score)]
        if not rows:
            logger.warning("No fold scores to plot")
            return None

        scores = pd.DataFrame(rows)

        fig, ax = plt.subplots(figsize=(10, 6), constrained_layout=True)
        sns.violinplot(data=scores, x='model', y='accuracy', hue='model', inner=None, ax=ax, legend=False)
        sns.stripplot(data=scores, x='model', y='accuracy', color='black', size=3, alpha=0.6, ax=ax)
        ax.set_xlabel('Model', fontsize=12)
        ax.set_ylabel('Held-out accuracy', fontsize=12)
        ax.set_title('Accuracy per Fold', fontsize=14, fontweight='bold')

        return self._save(fig, 'fold_accuracy.png', "Fold accuracy plot")

    def plot_tuning_profile(self, summary: pd.DataFrame, model_name: str) -> Optional[Path]:
        """
        Mean accuracy of every hyperparameter candidate with standard error bars

        Args:
            summary: Per-candidate tuning summary
            model_name: Name of the model
        """
        if summary is None or summary.empty:
            return None

        scored = summary.dropna(subset=['mean_accuracy'])
        if scored.empty:
            logger.warning(f"No scored candidates to plot for {model_name}")
            return None

        best_id = scored.loc[scored['mean_accuracy'].idxmax(), 'candidate_id']

        fig, ax = plt.subplots(figsize=(max(8, 0.4 * len(summary)), 6), constrained_layout=True)
        ax.errorbar(scored['candidate_id'], scored['mean_accuracy'], yerr=scored['std_error'].fillna(0),
                    fmt='o', capsize=4, color='steelblue', ecolor='gray', label='Candidate')

        best = scored[scored['candidate_id'] == best_id]
        ax.plot(best['candidate_id'], best['mean_accuracy'], 'r*', markersize=15,
                label=f"Best: candidate {best_id} ({best['mean_accuracy'].iloc[0]:.4f})")

        ax.set_xlabel('Candidate', fontsize=12)
        ax.set_ylabel('Mean CV accuracy', fontsize=12)
        ax.set_title(f'{model_name} - Hyperparameter Search', fontsize=14, fontweight='bold')
        ax.legend(frameon=True, fancybox=True, shadow=True)
        ax.grid(True, alpha=0.3, linestyle='--')

        return self._save(fig, f'{model_name}_tuning.png', "Tuning profile plot")

    def plot_feature_importance(self, feature_importance: pd.DataFrame,
                                model_name: str, top_n: int = 20) -> Optional[Path]:
        """
        Plot feature importance

        Args:
            feature_importance: DataFrame with feature importance
            model_name: Name of the model
            top_n: Number of top features to show
        """
        if feature_importance is None or feature_importance.empty:
            logger.warning(f"No feature importance available for {model_name}")
            return None

        top_features = feature_importance.head(top_n)

        fig, ax = plt.subplots(figsize=(10, 8), constrained_layout=True)

        y_pos = np.arange(len(top_features))
        colors = plt.cm.viridis(np.linspace(0.4, 0.9, len(top_features)))
        ax.barh(y_pos, top_features['importance'], color=colors, edgecolor='black', linewidth=0.5)

        ax.set_yticks(y_pos)
        ax.set_yticklabels(top_features['feature'], fontsize=10)
        ax.invert_yaxis()
        ax.set_xlabel('Importance', fontsize=12)
        ax.set_title(f'{model_name} - Top {top_n} Feature Importance', fontsize=14, fontweight='bold')
        ax.grid(True, alpha=0.3, axis='x', linestyle='--')

        return self._save(fig, f'{model_name}_feature_importance.png', "Feature importance plot")
